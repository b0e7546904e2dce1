"""
Closed Waybill Report — A4 PDF export.

One section per closed waybill with its lines, expected vs counted and the
difference. Built in memory with reportlab; the router streams the bytes.
"""

from datetime import date
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from db.models import Waybill

REPORT_FILENAME = "Closed_Incoming_Report.pdf"

_HEADER = ["Product", "Incoming", "UOM", "Actual", "Diff", "Remark"]
_COL_WIDTHS = [60 * mm, 20 * mm, 20 * mm, 20 * mm, 18 * mm, 42 * mm]


def _fmt_qty(value: float | int | None) -> str:
    if value is None:
        return ""
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def _range_label(start: date | None, end: date | None) -> str:
    if start and end:
        return f"Closed {start:%B %d, %Y} – {end:%B %d, %Y}"
    if start:
        return f"Closed on or after {start:%B %d, %Y}"
    if end:
        return f"Closed on or before {end:%B %d, %Y}"
    return "All closed waybills"


def _line_table(waybill: Waybill, cell_style) -> Table:
    rows = [_HEADER]
    highlight = []
    for idx, item in enumerate(waybill.items, 1):
        diff = item.actual_count - item.incoming
        rows.append(
            [
                Paragraph(escape(item.product_name), cell_style),
                _fmt_qty(item.incoming),
                item.uom_incoming,
                _fmt_qty(item.actual_count),
                _fmt_qty(diff) if diff else "",
                Paragraph(escape(item.remark_actual or ""), cell_style),
            ]
        )
        if diff:
            highlight.append(("TEXTCOLOR", (4, idx), (4, idx), colors.HexColor("#b91c1c")))

    table = Table(rows, colWidths=_COL_WIDTHS, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1f2937")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("ALIGN", (1, 1), (4, -1), "RIGHT"),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#9ca3af")),
                *highlight,
            ]
        )
    )
    return table


def render_closed_report(
    waybills: list[Waybill],
    start: date | None = None,
    end: date | None = None,
) -> bytes:
    """Render closed waybills (already sorted) to PDF bytes."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=20,
        rightMargin=20,
        topMargin=20,
        bottomMargin=20,
        title="Closed Incoming Report",
    )
    styles = getSampleStyleSheet()
    cell_style = styles["BodyText"].clone("cell", fontSize=8, leading=9)

    elements = [
        Paragraph("Closed Incoming Report", styles["Title"]),
        Paragraph(escape(_range_label(start, end)), styles["Normal"]),
        Spacer(1, 6 * mm),
    ]

    if not waybills:
        elements.append(Paragraph("No closed waybills in this period.", styles["Normal"]))

    for waybill in waybills:
        closed = f"{waybill.closed_at:%B %d, %Y %H:%M}" if waybill.closed_at else "-"
        heading = (
            f"<b>{escape(waybill.waybill_no)}</b> &nbsp; dated {waybill.date:%B %d, %Y} &nbsp; "
            f"declared {_fmt_qty(waybill.count)} {escape(waybill.uom)} &nbsp; closed {closed}"
        )
        elements.append(Paragraph(heading, styles["Heading4"]))
        elements.append(_line_table(waybill, cell_style))
        elements.append(Spacer(1, 5 * mm))

    doc.build(elements)
    return buffer.getvalue()
