"""Render format-neutral report documents to PDF, Excel, or a ZIP of both."""

import io
import re
import zipfile
from xml.sax.saxutils import escape

from openpyxl import Workbook
from openpyxl.chart import BarChart, Reference
from openpyxl.styles import Font
from reportlab.graphics.charts.barcharts import VerticalBarChart
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from wastecollect_api.lib.reports.formatting import FORMAT_EXTENSIONS, MEDIA_TYPES
from wastecollect_api.lib.reports.types import ChartSeries, RenderedReport, ReportDocument, ReportFormat

HEADER_BG = colors.HexColor("#1F5F3B")
ROW_ALT_BG = colors.HexColor("#EEF5F0")

# Excel forbids these characters in sheet titles and caps them at 31 chars
_INVALID_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")


def _cell_text(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:,.2f}"
    return str(value)


def _pdf_table(headers: list[str], rows: list[list[object]]) -> Table:
    data = [headers, *[[_cell_text(v) for v in row] for row in rows]]
    table = Table(data, hAlign="LEFT")
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_BG),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, ROW_ALT_BG]),
                ("GRID", (0, 0), (-1, -1), 0.4, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("TOPPADDING", (0, 0), (-1, -1), 4),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    return table


def _pdf_chart(series: ChartSeries) -> Drawing:
    drawing = Drawing(440, 220)
    chart = VerticalBarChart()
    chart.x = 50
    chart.y = 40
    chart.width = 360
    chart.height = 160
    chart.data = [list(series.values)]
    chart.categoryAxis.categoryNames = list(series.labels)
    chart.categoryAxis.labels.fontSize = 7
    chart.valueAxis.valueMin = 0
    chart.valueAxis.valueMax = max(max(series.values), 1)
    chart.bars[0].fillColor = HEADER_BG
    drawing.add(chart)
    return drawing


def render_pdf(document: ReportDocument, *, include_charts: bool) -> bytes:
    """Render a document as a PDF.

    Args:
        document: The report content.
        include_charts: Whether to draw the document's chart, if any.

    Returns:
        PDF bytes.
    """
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=36,
        rightMargin=36,
        topMargin=36,
        bottomMargin=36,
        title=document.title,
        author="WasteCollect",
    )
    styles = getSampleStyleSheet()

    story: list = [Paragraph(escape(document.title), styles["Title"])]
    for line in document.subtitle_lines:
        story.append(Paragraph(escape(line), styles["BodyText"]))
    story.append(Spacer(1, 12))

    if document.summary:
        story.append(Paragraph("Summary", styles["Heading2"]))
        story.append(_pdf_table(["Metric", "Value"], [[k, v] for k, v in document.summary]))
        story.append(Spacer(1, 12))

    for table in document.tables:
        story.append(Paragraph(escape(table.title), styles["Heading2"]))
        if table.rows:
            story.append(_pdf_table(table.headers, table.rows))
        else:
            story.append(Paragraph("No data for the selected filters.", styles["BodyText"]))
        story.append(Spacer(1, 12))

    if include_charts and document.chart is not None and document.chart.values:
        story.append(Paragraph(escape(document.chart.title), styles["Heading2"]))
        story.append(_pdf_chart(document.chart))

    doc.build(story)
    return buf.getvalue()


def _sheet_title(title: str, used: set[str]) -> str:
    base = _INVALID_SHEET_CHARS.sub(" ", title).strip()[:31] or "Sheet"
    candidate = base
    n = 2
    while candidate.lower() in used:
        suffix = f" ({n})"
        candidate = f"{base[: 31 - len(suffix)]}{suffix}"
        n += 1
    used.add(candidate.lower())
    return candidate


def render_excel(document: ReportDocument, *, include_charts: bool) -> bytes:
    """Render a document as an .xlsx workbook.

    The first sheet holds the title block and summary metrics; each table
    gets its own sheet. When charts are requested the chart series is
    written to a "Chart" sheet with a bar chart anchored beside it.

    Args:
        document: The report content.
        include_charts: Whether to add the chart sheet.

    Returns:
        Workbook bytes.
    """
    wb = Workbook()
    used: set[str] = set()
    bold = Font(bold=True)

    ws = wb.active
    ws.title = _sheet_title("Summary", used)
    ws.append([document.title])
    ws["A1"].font = Font(bold=True, size=14)
    for line in document.subtitle_lines:
        ws.append([line])
    ws.append([])
    ws.append(["Metric", "Value"])
    for cell in ws[ws.max_row]:
        cell.font = bold
    for key, value in document.summary:
        ws.append([key, value])
    ws.column_dimensions["A"].width = 40
    ws.column_dimensions["B"].width = 20

    for table in document.tables:
        sheet = wb.create_sheet(_sheet_title(table.title, used))
        sheet.append(table.headers)
        for cell in sheet[1]:
            cell.font = bold
        for row in table.rows:
            sheet.append(list(row))

    if include_charts and document.chart is not None and document.chart.values:
        series = document.chart
        sheet = wb.create_sheet(_sheet_title("Chart", used))
        sheet.append(["Label", series.title])
        for label, value in zip(series.labels, series.values, strict=True):
            sheet.append([label, value])
        chart = BarChart()
        chart.title = series.title
        data = Reference(sheet, min_col=2, min_row=1, max_row=len(series.values) + 1)
        categories = Reference(sheet, min_col=1, min_row=2, max_row=len(series.values) + 1)
        chart.add_data(data, titles_from_data=True)
        chart.set_categories(categories)
        sheet.add_chart(chart, "D2")

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def render_report(
    document: ReportDocument,
    output_format: ReportFormat | str,
    *,
    include_charts: bool,
    basename: str = "report",
) -> RenderedReport:
    """Render a document in the requested format.

    ``both`` produces a single ZIP archive holding ``{basename}.pdf`` and
    ``{basename}.xlsx``.

    Args:
        document: The report content.
        output_format: pdf, excel, or both.
        include_charts: Whether to include charts.
        basename: File stem used for members of a ZIP bundle.

    Returns:
        The rendered artifact.
    """
    fmt = ReportFormat(output_format)
    if fmt is ReportFormat.PDF:
        content = render_pdf(document, include_charts=include_charts)
    elif fmt is ReportFormat.EXCEL:
        content = render_excel(document, include_charts=include_charts)
    else:
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
            bundle.writestr(f"{basename}.pdf", render_pdf(document, include_charts=include_charts))
            bundle.writestr(f"{basename}.xlsx", render_excel(document, include_charts=include_charts))
        content = buf.getvalue()

    ext = FORMAT_EXTENSIONS[fmt]
    return RenderedReport(
        content=content,
        extension=ext,
        media_type=MEDIA_TYPES[ext],
        municipality_name=document.municipality_name,
    )
