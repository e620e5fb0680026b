"""
Golden Bridge Women — demo data set.

Users (password for all: ``demo1234``):
    sarah@goldenbridge.org    admin
    emily@goldenbridge.org    program manager, Spring Leadership Cohort
    michael@goldenbridge.org  program manager, Tech Career Accelerator
    jessica@goldenbridge.org  participant, Spring Leadership Cohort
    maria@goldenbridge.org    participant, Spring Leadership Cohort
    aisha@goldenbridge.org    participant, Tech Career Accelerator

Re-running is safe: users are matched on email, programs on name, and
Jessica's cycle and milestones are only created with her account.
"""

import logging
from datetime import date, datetime, timedelta, timezone

from goldenbridge.models import db
from goldenbridge.models.finance import BalanceSheetCycle, Expense
from goldenbridge.models.milestone import AssignmentType, Milestone, ProgressReport
from goldenbridge.models.program import Program, ProgramManager, ProgramParticipant
from goldenbridge.models.user import User, UserRole
from goldenbridge.utils.crypto import hash_password

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "demo1234"

USERS = [
    {"key": "sarah", "name": "Sarah Johnson", "email": "sarah@goldenbridge.org", "role": UserRole.ADMIN},
    {"key": "emily", "name": "Emily Chen", "email": "emily@goldenbridge.org", "role": UserRole.PROGRAM_MANAGER},
    {"key": "michael", "name": "Michael Brown", "email": "michael@goldenbridge.org", "role": UserRole.PROGRAM_MANAGER},
    {"key": "jessica", "name": "Jessica Williams", "email": "jessica@goldenbridge.org", "role": UserRole.PARTICIPANT},
    {"key": "maria", "name": "Maria Garcia", "email": "maria@goldenbridge.org", "role": UserRole.PARTICIPANT},
    {"key": "aisha", "name": "Aisha Patel", "email": "aisha@goldenbridge.org", "role": UserRole.PARTICIPANT},
]

PROGRAMS = [
    {
        "key": "p1",
        "name": "Spring Leadership Cohort",
        "description": "Six-month leadership development program for emerging women leaders.",
        "managers": ["emily"],
        "participants": ["jessica", "maria"],
    },
    {
        "key": "p2",
        "name": "Tech Career Accelerator",
        "description": "Skills and mentorship track for women moving into technology roles.",
        "managers": ["michael"],
        "participants": ["aisha"],
    },
]

JESSICA_BUDGET = 2500.00
JESSICA_EXPENSES = [
    ("Online course", 89.99, "education", "Coursera", "Leadership foundations"),
    ("Conference ticket", 199.00, "events", "Women in Leadership Summit", ""),
    ("Laptop", 450.00, "equipment", "Best Buy", "Refurbished"),
    ("Books", 125.50, "education", "Amazon", "Reading list for the cohort"),
]


def _ensure_user(entry, created):
    user = User.query.filter_by(email=entry["email"]).first()
    if user:
        return user, False
    user = User(
        name=entry["name"],
        email=entry["email"],
        password_hash=hash_password(DEMO_PASSWORD),
        role=entry["role"].value,
    )
    db.session.add(user)
    db.session.flush()
    created["users"] += 1
    return user, True


def _ensure_program(entry, users, admin, today, created):
    program = Program.query.filter_by(name=entry["name"]).first()
    if program is None:
        program = Program(
            name=entry["name"],
            description=entry["description"],
            start_date=today - timedelta(days=30),
            end_date=today + timedelta(days=150),
            created_by=admin.id,
        )
        db.session.add(program)
        db.session.flush()
        created["programs"] += 1

    for key in entry["managers"]:
        if users[key].id not in program.manager_ids:
            program.managers.append(ProgramManager(user=users[key]))
    for key in entry["participants"]:
        if users[key].id not in program.participant_ids:
            program.participants.append(ProgramParticipant(user=users[key], status="active"))
    return program


def _seed_jessica(jessica, emily, program, today, created):
    cycle = BalanceSheetCycle(
        user_id=jessica.id,
        start_date=today - timedelta(days=30),
        end_date=today + timedelta(days=60),
        budget=JESSICA_BUDGET,
        is_active=True,
    )
    for i, (item, amount, category, contact, remarks) in enumerate(JESSICA_EXPENSES):
        cycle.expenses.append(Expense(
            date=today - timedelta(days=25 - i * 5),
            item=item,
            amount=amount,
            category=category,
            contact=contact,
            remarks=remarks or None,
        ))
    db.session.add(cycle)
    created["cycles"] += 1
    created["expenses"] += len(JESSICA_EXPENSES)

    db.session.add(Milestone(
        user_id=jessica.id,
        program_id=program.id,
        title="Complete public speaking workshop",
        description="Attend all four sessions and deliver the final talk.",
        category="skill",
        start_date=today - timedelta(days=14),
        end_date=today + timedelta(days=30),
        status="in_progress",
        assignment_type=AssignmentType.SELF_CREATED.value,
    ))

    assigned = Milestone(
        user_id=jessica.id,
        program_id=program.id,
        title="Build a 90-day leadership plan",
        description="Draft goals, stakeholders and checkpoints for the next quarter.",
        category="project",
        start_date=today - timedelta(days=10),
        end_date=today + timedelta(days=45),
        status="in_progress",
        assigned_by=emily.id,
        assigned_at=datetime.now(timezone.utc) - timedelta(days=10),
        assignment_type=AssignmentType.MANAGER_ASSIGNED.value,
        is_required=True,
        can_decline=True,
        accepted_at=datetime.now(timezone.utc) - timedelta(days=9),
    )
    assigned.reports.append(ProgressReport(
        week_number=1,
        report_date=today - timedelta(days=3),
        content="Outlined three leadership goals and booked a check-in with my mentor.",
        hours_spent=4.5,
        completion_percentage=20,
    ))
    db.session.add(assigned)
    created["milestones"] += 2


def seed_demo_data(today: date | None = None) -> dict:
    """Create the demo data set inside the current app context. Returns counts of new rows."""
    today = today or date.today()
    created = {"users": 0, "programs": 0, "cycles": 0, "expenses": 0, "milestones": 0}

    users, fresh = {}, {}
    for entry in USERS:
        users[entry["key"]], fresh[entry["key"]] = _ensure_user(entry, created)

    programs = {
        entry["key"]: _ensure_program(entry, users, users["sarah"], today, created)
        for entry in PROGRAMS
    }
    db.session.flush()

    if fresh["jessica"]:
        _seed_jessica(users["jessica"], users["emily"], programs["p1"], today, created)

    db.session.commit()
    logger.info("Demo seed complete: %s", created)
    return created
