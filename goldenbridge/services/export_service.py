import csv
import html
import io
import json
import logging
from datetime import datetime, timezone

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from goldenbridge.services import audit_service

logger = logging.getLogger(__name__)

STATUS_FILLS = {
    "completed": PatternFill(start_color="27AE60", end_color="27AE60", fill_type="solid"),
    "in_progress": PatternFill(start_color="F39C12", end_color="F39C12", fill_type="solid"),
    "paused": PatternFill(start_color="E74C3C", end_color="E74C3C", fill_type="solid"),
}
WHITE_FONT = Font(color="FFFFFF", bold=True)
HEADER_FILL = PatternFill(start_color="7B3F61", end_color="7B3F61", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

EXPORT_FORMATS = ("json", "csv", "html", "xlsx")


FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def _safe_cell(value):
    """Text that a spreadsheet would evaluate as a formula is kept literal."""
    if isinstance(value, str) and value.startswith(FORMULA_PREFIXES):
        return "'" + value
    return value


def record_export(actor, export_type: str, fmt: str, program_id=None, target_id=None) -> None:
    """Audit an export. Best-effort like every other audit write."""
    details = {"exportType": export_type, "format": fmt}
    if program_id is not None:
        details["programId"] = program_id
    audit_service.log_audit_action(
        actor.id, audit_service.EXPORT_REPORT, target_id, details, program_id=program_id,
    )


def _write_rows(header: list, rows) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(header)
    for row in rows:
        writer.writerow(["" if v is None else _safe_cell(v) for v in row])
    return buf.getvalue()


# ── JSON ─────────────────────────────────────────────────────────────────────

def report_to_json(report: dict) -> str:
    return json.dumps(report, indent=2, default=str)


# ── CSV ──────────────────────────────────────────────────────────────────────

def report_to_csv(report: dict) -> str:
    """Flatten the report into ``section,metric,value`` rows."""
    rows = []
    program = report.get("program", {})
    for key in ("name", "status", "start_date", "end_date"):
        rows.append(("program", key, program.get(key)))
    rows.append(("participants", "count", report.get("participants", 0)))
    for section in ("milestones", "financial", "engagement"):
        for key, value in report.get(section, {}).items():
            rows.append((section, key, value))

    progress = report.get("progress", {})
    rows.append(("progress", "overall_completion", progress.get("overall_completion")))
    rows.append(("progress", "average_completion", progress.get("average_completion")))
    for p in progress.get("top_performers", []):
        rows.append(("top_performer", p["name"], f"{p['completion_rate']}%"))
    for p in progress.get("needs_attention", []):
        rows.append(("needs_attention", p["name"], p.get("last_activity") or "no activity"))

    timeline = report.get("timeline", {})
    for key in ("program_progress", "days_remaining", "days_elapsed"):
        rows.append(("timeline", key, timeline.get(key)))
    for d in timeline.get("upcoming_deadlines", []):
        rows.append(("deadline", d["title"], d["end_date"]))
    return _write_rows(["section", "metric", "value"], rows)


def expenses_to_csv(cycles) -> str:
    """Every expense of every given cycle, cycle columns repeated per row."""
    rows = []
    for cycle in cycles:
        for e in cycle.expenses:
            rows.append((
                cycle.id,
                cycle.start_date.isoformat(),
                cycle.end_date.isoformat(),
                e.date.isoformat() if e.date else None,
                e.item,
                f"{float(e.amount):.2f}",
                e.category,
                e.contact,
                e.remarks,
                e.receipt_url,
            ))
    return _write_rows(
        ["cycle_id", "cycle_start", "cycle_end", "date", "item", "amount",
         "category", "contact", "remarks", "receipt_url"],
        rows,
    )


def milestones_to_csv(milestones) -> str:
    rows = []
    for m in milestones:
        latest = m.latest_report
        rows.append((
            m.id,
            m.title,
            m.category,
            m.status,
            m.start_date.isoformat() if m.start_date else None,
            m.end_date.isoformat() if m.end_date else None,
            m.program_id,
            m.assignment_type or "self",
            m.assignment_state,
            len(m.reports),
            latest.completion_percentage if latest else 0,
        ))
    return _write_rows(
        ["id", "title", "category", "status", "start_date", "end_date", "program_id",
         "assignment_type", "assignment_state", "reports", "latest_completion"],
        rows,
    )


def participant_progress_to_csv(rows: list[dict]) -> str:
    header = [
        "user_id", "name", "email", "total_milestones", "completed",
        "in_progress", "completion_rate", "total_reports", "last_report_date",
    ]
    return _write_rows(header, ([r.get(k) for k in header] for r in rows))


def audit_log_to_csv(entries) -> str:
    return _write_rows(
        ["timestamp", "actor_id", "action", "target_id", "program_id", "details"],
        (
            (
                e.timestamp.isoformat() if e.timestamp else None,
                e.user_id,
                e.action,
                e.target_id,
                e.program_id,
                json.dumps(e.details, sort_keys=True),
            )
            for e in entries
        ),
    )


# ── HTML ─────────────────────────────────────────────────────────────────────

def _esc(value) -> str:
    return html.escape("" if value is None else str(value))


def _table(headers, rows) -> str:
    head = "".join(f"<th>{_esc(h)}</th>" for h in headers)
    body = "".join(
        "<tr>" + "".join(f"<td>{_esc(v)}</td>" for v in row) + "</tr>" for row in rows
    )
    return f"<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>"


def report_to_html(report: dict) -> str:
    """
    Printable HTML page for a program report.
    Every interpolated value goes through html.escape.
    """
    program = report.get("program", {})
    milestones = report.get("milestones", {})
    progress = report.get("progress", {})
    financial = report.get("financial", {})
    engagement = report.get("engagement", {})
    timeline = report.get("timeline", {})
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    summary = _table(
        ["Metric", "Value"],
        [
            ("Participants", report.get("participants", 0)),
            ("Milestones", milestones.get("total", 0)),
            ("Completed", milestones.get("completed", 0)),
            ("Overall completion", f"{progress.get('overall_completion', 0)}%"),
            ("Total budget", f"${financial.get('total_budget', 0):,.2f}"),
            ("Total spent", f"${financial.get('total_spent', 0):,.2f}"),
            ("Average utilization", f"{financial.get('average_utilization', 0)}%"),
            ("Progress reports", engagement.get("total_reports", 0)),
            ("Days remaining", timeline.get("days_remaining", 0)),
        ],
    )
    performers = _table(
        ["Participant", "Completion"],
        [(p["name"], f"{p['completion_rate']}%") for p in progress.get("top_performers", [])],
    )
    attention = _table(
        ["Participant", "Last activity"],
        [(p["name"], p.get("last_activity") or "No activity")
         for p in progress.get("needs_attention", [])],
    )
    deadlines = _table(
        ["Milestone", "Due"],
        [(d["title"], d["end_date"]) for d in timeline.get("upcoming_deadlines", [])],
    )

    return f"""<!DOCTYPE html>
<html><head>
<meta charset="utf-8">
<title>Program Report: {_esc(program.get('name'))}</title>
<style>
    body {{ font-family: 'Segoe UI', Arial, sans-serif; margin: 40px; color: #333; }}
    h1 {{ color: #7B3F61; margin-bottom: 4px; }}
    .meta {{ color: #666; font-size: 13px; margin-bottom: 24px; }}
    table {{ border-collapse: collapse; width: 100%; margin: 16px 0; }}
    th {{ background: #7B3F61; color: #fff; padding: 10px 12px; text-align: left; }}
    td {{ padding: 8px 12px; border-bottom: 1px solid #e0e0e0; }}
    @media print {{ body {{ margin: 20px; }} }}
</style>
</head><body>
<h1>{_esc(program.get('name'))}</h1>
<p class="meta">{_esc(program.get('start_date'))} to {_esc(program.get('end_date'))}
({_esc(program.get('status'))}). Generated {_esc(generated)}</p>
<p>{_esc(program.get('description'))}</p>

<h2>Summary</h2>
{summary}

<h2>Top Performers</h2>
{performers}

<h2>Needs Attention</h2>
{attention}

<h2>Upcoming Deadlines</h2>
{deadlines}

</body></html>"""


# ── Excel ────────────────────────────────────────────────────────────────────

def _apply_header_style(ws, row: int, col_count: int) -> None:
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _auto_width(ws) -> None:
    """Auto-size column widths based on content (capped at 60 chars)."""
    for col in ws.columns:
        max_len = 0
        col_letter = get_column_letter(col[0].column)
        for cell in col:
            if cell.value:
                max_len = max(max_len, min(len(str(cell.value)), 60))
        ws.column_dimensions[col_letter].width = max(max_len + 4, 12)


def _write_table(ws, start_row: int, headers: list, rows) -> int:
    for col, header in enumerate(headers, 1):
        ws.cell(row=start_row, column=col, value=header)
    _apply_header_style(ws, start_row, len(headers))
    row = start_row
    for values in rows:
        row += 1
        for col, value in enumerate(values, 1):
            ws.cell(row=row, column=col, value=_safe_cell(value)).border = THIN_BORDER
    return row


def report_to_xlsx(report: dict, progress_rows: list[dict] | None = None) -> io.BytesIO:
    """
    Styled workbook: Summary, Participants and Deadlines sheets.
    Returns a BytesIO buffer ready for Flask send_file.
    """
    wb = Workbook()
    program = report.get("program", {})

    # ── Sheet 1: Summary ─────────────────────────────────────────────
    ws = wb.active
    ws.title = "Summary"
    ws.merge_cells("A1:D1")
    ws["A1"] = f"Program Report: {program.get('name', '')}"
    ws["A1"].font = Font(size=16, bold=True)
    ws["A2"] = f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}"
    ws["A2"].font = Font(size=10, italic=True, color="666666")

    rows = [("Participants", "count", report.get("participants", 0))]
    for section in ("milestones", "financial", "engagement"):
        rows.extend((section.title(), k, v) for k, v in report.get(section, {}).items())
    progress = report.get("progress", {})
    rows.append(("Progress", "overall_completion", progress.get("overall_completion", 0)))
    rows.append(("Progress", "average_completion", progress.get("average_completion", 0)))
    timeline = report.get("timeline", {})
    for key in ("program_progress", "days_remaining", "days_elapsed"):
        rows.append(("Timeline", key, timeline.get(key)))
    _write_table(ws, 4, ["Section", "Metric", "Value"], rows)
    _auto_width(ws)

    # ── Sheet 2: Participants ────────────────────────────────────────
    ws2 = wb.create_sheet("Participants")
    headers = ["Name", "Email", "Milestones", "Completed", "In Progress", "Completion %", "Reports", "Last Report"]
    last = _write_table(ws2, 1, headers, (
        (r["name"], r["email"], r["total_milestones"], r["completed"], r["in_progress"],
         r["completion_rate"], r["total_reports"], r["last_report_date"])
        for r in progress_rows or []
    ))
    for row in range(2, last + 1):
        ws2.cell(row=row, column=6).alignment = Alignment(horizontal="center")
    _auto_width(ws2)

    # ── Sheet 3: Deadlines ───────────────────────────────────────────
    ws3 = wb.create_sheet("Deadlines")
    _write_table(ws3, 1, ["Milestone", "Participant", "Due"], (
        (d["title"], d["user_id"], d["end_date"]) for d in timeline.get("upcoming_deadlines", [])
    ))
    _auto_width(ws3)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf


def milestones_to_xlsx(milestones) -> io.BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = "Milestones"
    headers = ["Title", "Category", "Status", "Start", "End", "Assignment", "Reports"]
    last = _write_table(ws, 1, headers, (
        (m.title, m.category, m.status,
         m.start_date.isoformat() if m.start_date else "",
         m.end_date.isoformat() if m.end_date else "",
         m.assignment_state or "self", len(m.reports))
        for m in milestones
    ))
    for row in range(2, last + 1):
        cell = ws.cell(row=row, column=3)
        fill = STATUS_FILLS.get(cell.value)
        if fill:
            cell.fill = fill
            cell.font = WHITE_FONT
            cell.alignment = Alignment(horizontal="center")
    _auto_width(ws)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf
