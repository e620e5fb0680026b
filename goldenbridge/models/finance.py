"""
Golden Bridge Women
Finance domain models.

Models:
    - BalanceSheetCycle: a participant's budget period (at most one active)
    - Expense: a single spend line inside a cycle
"""

from datetime import datetime, timezone

from goldenbridge.models import db


def _money(value) -> float:
    return round(float(value or 0), 2)


class BalanceSheetCycle(db.Model):
    __tablename__ = "balance_cycles"
    __table_args__ = (
        db.Index("idx_cycle_owner_active", "user_id", "is_active"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    budget = db.Column(db.Float, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    expenses = db.relationship(
        "Expense",
        back_populates="cycle",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Expense.date",
    )

    @property
    def total_spent(self) -> float:
        return _money(sum(e.amount or 0 for e in self.expenses))

    @property
    def remaining(self) -> float:
        return _money(self.budget - self.total_spent)

    @property
    def utilization(self) -> int:
        """Spent share of the budget as a whole percentage."""
        if not self.budget:
            return 0
        return round(self.total_spent / self.budget * 100)

    def to_dict(self, include_expenses=True):
        d = {
            "id": self.id,
            "user_id": self.user_id,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "budget": _money(self.budget),
            "is_active": self.is_active,
            "total_spent": self.total_spent,
            "remaining": self.remaining,
            "utilization": self.utilization,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_expenses:
            d["expenses"] = [e.to_dict() for e in self.expenses]
        return d

    def __repr__(self):
        return f"<BalanceSheetCycle {self.id}: user={self.user_id} active={self.is_active}>"


class Expense(db.Model):
    __tablename__ = "expenses"

    id = db.Column(db.Integer, primary_key=True)
    cycle_id = db.Column(
        db.Integer, db.ForeignKey("balance_cycles.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    date = db.Column(db.Date, nullable=False)
    item = db.Column(db.String(300), nullable=False)
    amount = db.Column(db.Float, nullable=False, default=0)
    category = db.Column(db.String(50), nullable=True)
    receipt_url = db.Column(db.Text, nullable=True)
    contact = db.Column(db.String(200), nullable=True)
    remarks = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    cycle = db.relationship("BalanceSheetCycle", back_populates="expenses")

    def to_dict(self):
        return {
            "id": self.id,
            "cycle_id": self.cycle_id,
            "date": self.date.isoformat() if self.date else None,
            "item": self.item,
            "amount": _money(self.amount),
            "category": self.category,
            "receipt_url": self.receipt_url,
            "contact": self.contact,
            "remarks": self.remarks,
        }

    def __repr__(self):
        return f"<Expense {self.id}: {self.item[:30]} {self.amount}>"
