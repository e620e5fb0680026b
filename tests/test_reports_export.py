"""
Program report and export formatter tests.
"""

import csv
import io
import json
from datetime import date, datetime, timedelta, timezone

import openpyxl
import pytest

from goldenbridge.core.exceptions import PermissionDenied
from goldenbridge.models import db
from goldenbridge.models.audit import AuditLog
from goldenbridge.models.milestone import Milestone, ProgressReport
from goldenbridge.services import audit_service, export_service, finance_service, report_service

NOW = datetime.now(timezone.utc)
TODAY = NOW.date()


@pytest.fixture()
def cohort(make_user, make_program, manager):
    """Jessica has a budget, one completed and one active milestone; Maria has nothing yet."""
    jessica = make_user("participant", name="Jessica Williams")
    maria = make_user("participant", name="Maria <Garcia>")
    program = make_program(
        name="Spring Leadership Cohort", managers=[manager], participants=[jessica, maria],
        start=TODAY - timedelta(days=30), end=TODAY + timedelta(days=60),
    )

    cycle = finance_service.start_cycle(jessica, jessica, 2500, TODAY - timedelta(days=30),
                                        TODAY + timedelta(days=60))
    for item, amount in (("Online course", 89.99), ("Conference ticket", 199.00),
                         ("Laptop", 450.00), ("Books", 125.50)):
        finance_service.add_expense(jessica, jessica, cycle,
                                    {"item": item, "amount": amount, "date": TODAY})

    done = Milestone(user_id=jessica.id, program_id=program.id, title="Public speaking",
                     start_date=TODAY - timedelta(days=20), end_date=TODAY - timedelta(days=1),
                     status="completed")
    active = Milestone(user_id=jessica.id, program_id=program.id, title='Plan "Q3", draft',
                       start_date=TODAY - timedelta(days=5), end_date=TODAY + timedelta(days=10),
                       status="in_progress", assigned_by=manager.id)
    active.reports.append(ProgressReport(week_number=1, report_date=TODAY - timedelta(days=2),
                                         content="Outlined goals", completion_percentage=30))
    db.session.add_all([done, active])
    db.session.commit()
    return {"program": program, "jessica": jessica, "maria": maria}


class TestProgramReport:
    def test_sections(self, cohort):
        report = report_service.build_program_report(cohort["program"], now=NOW)

        assert report["participants"] == 2
        assert report["milestones"]["total"] == 2
        assert report["milestones"]["completed"] == 1
        assert report["milestones"]["assigned"] == 1
        assert report["milestones"]["self_created"] == 1
        assert report["progress"]["overall_completion"] == 50
        assert report["progress"]["average_completion"] == 25
        assert report["financial"] == {
            "total_budget": 2500.0,
            "total_spent": 864.49,
            "average_utilization": 35,
            "over_budget": 0,
        }
        assert report["engagement"]["total_reports"] == 1
        assert report["engagement"]["active_participants"] == 1
        assert report["timeline"]["days_remaining"] == 60
        assert report["timeline"]["days_elapsed"] == 30

    def test_rankings(self, cohort):
        progress = report_service.build_program_report(cohort["program"], now=NOW)["progress"]
        assert [p["user_id"] for p in progress["top_performers"]] == [cohort["jessica"].id]
        assert progress["top_performers"][0]["completion_rate"] == 50
        assert progress["needs_attention"] == [
            {"user_id": cohort["maria"].id, "name": "Maria <Garcia>", "last_activity": None},
        ]

    def test_upcoming_deadlines_skip_completed_and_past(self, cohort):
        deadlines = report_service.build_program_report(cohort["program"], now=NOW)["timeline"]["upcoming_deadlines"]
        assert [d["title"] for d in deadlines] == ['Plan "Q3", draft']

    def test_generate_is_permission_checked_and_audited(self, cohort, manager, make_user):
        outsider = make_user("program_manager")
        with pytest.raises(PermissionDenied):
            report_service.generate_program_report(outsider, cohort["program"])

        report_service.generate_program_report(manager, cohort["program"])
        entry = AuditLog.query.filter_by(action=audit_service.GENERATE_REPORT).one()
        assert entry.target_id is None
        assert entry.program_id == cohort["program"].id
        assert entry.details == {"programId": cohort["program"].id, "reportType": "comprehensive"}

    def test_participant_progress_rows(self, cohort):
        rows = report_service.participant_progress(cohort["program"])
        jessica = rows[0]
        assert jessica["total_milestones"] == 2
        assert jessica["completion_rate"] == 50
        assert jessica["last_report_date"] == (TODAY - timedelta(days=2)).isoformat()
        assert rows[1]["total_reports"] == 0


class TestFormatters:
    def test_json_round_trip(self, cohort):
        report = report_service.build_program_report(cohort["program"], now=NOW)
        parsed = json.loads(export_service.report_to_json(report))
        assert parsed["milestones"]["total"] == 2
        assert parsed["financial"]["total_budget"] == 2500.0
        assert parsed["participants"] == 2

    def test_csv_quotes_values(self, cohort):
        report = report_service.build_program_report(cohort["program"], now=NOW)
        text = export_service.report_to_csv(report)
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0] == ["section", "metric", "value"]
        assert ["deadline", 'Plan "Q3", draft', (TODAY + timedelta(days=10)).isoformat()] in rows
        assert '"Plan ""Q3"", draft"' in text

    def test_html_escapes(self, cohort):
        report = report_service.build_program_report(cohort["program"], now=NOW)
        page = export_service.report_to_html(report)
        assert "Maria &lt;Garcia&gt;" in page
        assert "<Garcia>" not in page
        assert "$2,500.00" in page

    def test_xlsx_workbook(self, cohort):
        program = cohort["program"]
        report = report_service.build_program_report(program, now=NOW)
        buf = export_service.report_to_xlsx(report, report_service.participant_progress(program))
        wb = openpyxl.load_workbook(buf)
        assert wb.sheetnames == ["Summary", "Participants", "Deadlines"]
        assert wb["Participants"]["A2"].value == "Jessica Williams"
        assert wb["Deadlines"].max_row == 2

    def test_expenses_csv(self, cohort):
        cycles = finance_service.list_cycles(cohort["jessica"], cohort["jessica"])
        rows = list(csv.DictReader(io.StringIO(export_service.expenses_to_csv(cycles))))
        assert len(rows) == 4
        assert {r["amount"] for r in rows} == {"89.99", "199.00", "450.00", "125.50"}

    def test_milestones_csv_and_xlsx(self, cohort):
        milestones = Milestone.query.filter_by(user_id=cohort["jessica"].id).order_by(Milestone.id).all()
        rows = list(csv.DictReader(io.StringIO(export_service.milestones_to_csv(milestones))))
        assert [r["status"] for r in rows] == ["completed", "in_progress"]
        assert rows[1]["latest_completion"] == "30"

        wb = openpyxl.load_workbook(export_service.milestones_to_xlsx(milestones))
        assert wb["Milestones"]["C2"].value == "completed"

    def test_formula_text_is_kept_literal(self, cohort):
        jessica = cohort["jessica"]
        m = Milestone(user_id=jessica.id, title="=HYPERLINK(\"http://x\",\"open\")",
                      start_date=TODAY, end_date=TODAY + timedelta(days=7))
        db.session.add(m)
        db.session.commit()

        wb = openpyxl.load_workbook(export_service.milestones_to_xlsx([m]))
        cell = wb["Milestones"]["A2"]
        assert cell.value == "'=HYPERLINK(\"http://x\",\"open\")"
        assert cell.data_type == "s"

        rows = list(csv.DictReader(io.StringIO(export_service.milestones_to_csv([m]))))
        assert rows[0]["title"].startswith("'=")

        cycle = finance_service.list_cycles(jessica, jessica)[0]
        finance_service.add_expense(jessica, jessica, cycle,
                                    {"item": "@SUM(1+1)", "amount": 5, "remarks": "+cmd", "date": TODAY})
        rows = list(csv.DictReader(io.StringIO(export_service.expenses_to_csv([cycle]))))
        added = next(r for r in rows if r["amount"] == "5.00")
        assert added["item"] == "'@SUM(1+1)"
        assert added["remarks"] == "'+cmd"

    def test_audit_csv(self):
        audit_service.log_audit_action(1, audit_service.EDIT_EXPENSE, 2, {"reason": "typo, fixed"})
        rows = list(csv.DictReader(io.StringIO(export_service.audit_log_to_csv(AuditLog.query.all()))))
        assert rows[0]["action"] == "EDIT_EXPENSE"
        assert json.loads(rows[0]["details"]) == {"reason": "typo, fixed"}

    def test_record_export(self, manager, cohort):
        export_service.record_export(manager, "participant_progress", "csv", program_id=cohort["program"].id)
        entry = AuditLog.query.filter_by(action=audit_service.EXPORT_REPORT).one()
        assert entry.details["exportType"] == "participant_progress"
        assert entry.program_id == cohort["program"].id


def test_empty_program_report(make_program):
    program = make_program(start=date(2026, 1, 1), end=date(2026, 1, 1))
    report = report_service.build_program_report(program, now=datetime(2026, 1, 1, tzinfo=timezone.utc))
    assert report["participants"] == 0
    assert report["progress"]["overall_completion"] == 0
    assert report["financial"]["average_utilization"] == 0
    assert report["timeline"]["program_progress"] == 0
