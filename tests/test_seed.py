"""Demo seed data."""

from goldenbridge.models.finance import BalanceSheetCycle
from goldenbridge.models.milestone import Milestone
from goldenbridge.models.program import Program
from goldenbridge.models.user import User
from goldenbridge.seed import DEMO_PASSWORD, seed_demo_data
from goldenbridge.services import finance_service, user_service


class TestDemoSeed:
    def test_creates_demo_accounts(self):
        created = seed_demo_data()
        assert created["users"] == 6
        assert created["programs"] == 2
        assert User.query.count() == 6
        assert Program.query.count() == 2

        emily = User.query.filter_by(email="emily@goldenbridge.org").one()
        jessica = User.query.filter_by(email="jessica@goldenbridge.org").one()
        assert emily.managed_program_ids == jessica.program_ids
        assert user_service.authenticate("jessica@goldenbridge.org", DEMO_PASSWORD).id == jessica.id

    def test_jessica_budget(self):
        seed_demo_data()
        jessica = User.query.filter_by(email="jessica@goldenbridge.org").one()
        cycle = BalanceSheetCycle.query.filter_by(user_id=jessica.id, is_active=True).one()
        summary = finance_service.budget_summary(cycle)
        assert summary["budget"] == 2500.0
        assert summary["spent"] == 864.49
        assert summary["remaining"] == 1635.51
        assert summary["utilization"] == 35

    def test_rerun_is_idempotent(self):
        seed_demo_data()
        again = seed_demo_data()
        assert again == {"users": 0, "programs": 0, "cycles": 0, "expenses": 0, "milestones": 0}
        assert Milestone.query.count() == 2
