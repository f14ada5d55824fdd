"""Excel export of a report window."""

from io import BytesIO

import openpyxl
from openpyxl.styles import Font, PatternFill

from django.conf import settings

HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(
    start_color="F59E0B", end_color="F59E0B", fill_type="solid"
)


def _table(wb, title, headers, rows):
    ws = wb.create_sheet(title)
    ws.append(headers)
    for col_idx, _header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
    for row in rows:
        ws.append(row)
    return ws


def export_report_xlsx(report: dict) -> BytesIO:
    """Write a report from ``reports.build_report`` to an .xlsx workbook.

    Returns a BytesIO positioned at the start of the file.
    """
    wb = openpyxl.Workbook()

    ws_summary = wb.active
    ws_summary.title = "Summary"
    site_name = getattr(settings, "SITE_NAME", "Stockroom")
    ws_summary.append([f"{site_name} Report ({report['date_range']})"])
    ws_summary["A1"].font = Font(bold=True, size=14)
    ws_summary.append([])
    ws_summary.append(
        ["From", report["start"].strftime("%Y-%m-%d %H:%M")]
    )
    ws_summary.append(["To", report["end"].strftime("%Y-%m-%d %H:%M")])
    ws_summary.append(["Total Items", report["total_items"]])
    ws_summary.append(["Requests in Period", report["total_requests"]])
    ws_summary.append(["Actions in Period", report["total_actions"]])
    total_value = float(report["total_asset_value"])
    average_value = float(report["average_item_value"])
    ws_summary.append(["Total Asset Value", f"${total_value:,.2f}"])
    ws_summary.append(["Average Item Value", f"${average_value:,.2f}"])
    ws_summary.append([])
    ws_summary.append(["Condition", "Items"])
    for condition, count in report["condition_stats"].items():
        ws_summary.append([condition.title(), count])

    shares = {
        entry["category"]: entry["percentage"]
        for entry in report["category_values"]
    }
    _table(
        wb,
        "Categories",
        ["Category", "Total", "Available", "Borrowed", "Value", "Share %"],
        [
            [
                category,
                stats["total"],
                stats["available"],
                stats["borrowed"],
                float(stats["value"]),
                round(shares.get(category, 0.0), 1),
            ]
            for category, stats in report["category_stats"].items()
        ],
    )
    _table(
        wb,
        "Top Borrowers",
        ["Name", "Email", "Requests"],
        [
            [entry["name"], entry["email"], entry["borrow_count"]]
            for entry in report["top_borrowers"]
        ],
    )
    _table(
        wb,
        "Most Borrowed",
        ["Item", "Category", "Requests"],
        [
            [entry["name"], entry["category"], entry["borrow_count"]]
            for entry in report["most_borrowed_items"]
        ],
    )
    ws_activity = _table(
        wb,
        "Activity",
        ["Action", "Count"],
        sorted(
            report["activity_by_type"].items(), key=lambda pair: -pair[1]
        ),
    )
    ws_activity.append([])
    ws_activity.append(["Most Active Users", "Actions"])
    ws_activity.cell(row=ws_activity.max_row, column=1).font = HEADER_FONT
    for entry in report["user_activity"]:
        ws_activity.append([entry["name"], entry["activity_count"]])

    for ws in wb.worksheets:
        ws.column_dimensions["A"].width = 30

    buf = BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf
