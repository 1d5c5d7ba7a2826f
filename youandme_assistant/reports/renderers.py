"""Render a ReportModel to CSV or PDF bytes.

Both renderers take the same model and never reformat its values, so a CSV
and a PDF of one report always show the same figures.
"""
import csv
import io
import os
from typing import NamedTuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..app.errors import InvalidReportRequestError
from ..data.locale_store import LocaleStore, get_locale_store
from ..schemas.io_models import ReportModel

CONTENT_TYPES = {"csv": "text/csv", "pdf": "application/pdf"}

# The built-in Type 1 fonts are Latin-1 only; DejaVu Sans also covers Greek.
FONTS_DIR = os.path.join(os.path.dirname(__file__), "fonts")
FONT = "DejaVuSans"
FONT_BOLD = "DejaVuSans-Bold"

# wider tables switch the page to landscape
PORTRAIT_MAX_COLUMNS = 5

HEADER_BG = colors.HexColor("#2E5E4E")
ROW_ALT_BG = colors.HexColor("#F2F5F3")


class RenderedReport(NamedTuple):
    content: bytes
    filename: str
    content_type: str


def register_fonts():
    """Register the report fonts with reportlab once per process."""
    if FONT in pdfmetrics.getRegisteredFontNames():
        return
    pdfmetrics.registerFont(TTFont(FONT, os.path.join(FONTS_DIR, "DejaVuSans.ttf")))
    pdfmetrics.registerFont(TTFont(FONT_BOLD, os.path.join(FONTS_DIR, "DejaVuSans-Bold.ttf")))
    pdfmetrics.registerFontFamily(FONT, normal=FONT, bold=FONT_BOLD, italic=FONT, boldItalic=FONT_BOLD)


def report_filename(model: ReportModel, fmt: str) -> str:
    return f"{model.report_type}_{model.generated_at:%Y%m%d}.{fmt}"


def render_csv(model: ReportModel) -> bytes:
    """UTF-8 with BOM so spreadsheet apps pick up the encoding; CRLF line ends."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\r\n")
    writer.writerow(model.header)
    for row in model.rows:
        writer.writerow(row.cells)
    if model.summary:
        writer.writerow([])
        for label, value in model.summary.items():
            writer.writerow([label, value])
    return buf.getvalue().encode("utf-8-sig")


def render_pdf(model: ReportModel, locale_store: LocaleStore = None) -> bytes:
    locales = locale_store or get_locale_store()
    lang = model.language
    register_fonts()
    sample = getSampleStyleSheet()
    title = ParagraphStyle("title", parent=sample["Title"], fontName=FONT_BOLD)
    normal = ParagraphStyle("normal", parent=sample["Normal"], fontName=FONT)
    italic = ParagraphStyle("italic", parent=normal, textColor=colors.grey)
    heading = ParagraphStyle("heading", parent=sample["Heading2"], fontName=FONT_BOLD)
    cell = ParagraphStyle("cell", parent=sample["BodyText"], fontName=FONT, fontSize=8, leading=10)
    cell_right = ParagraphStyle("cell_right", parent=cell, alignment=TA_RIGHT)
    head = ParagraphStyle("head", parent=cell, fontName=FONT_BOLD, textColor=colors.white)
    head_right = ParagraphStyle("head_right", parent=head, alignment=TA_RIGHT)

    pagesize = landscape(A4) if len(model.columns) > PORTRAIT_MAX_COLUMNS else A4
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=pagesize,
        title=model.title,
        leftMargin=15 * mm,
        rightMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=15 * mm,
        invariant=1,
    )

    story = [
        Paragraph(escape(model.title), title),
        Paragraph(escape(locales.template(
            "report.generated", lang, timestamp=locales.format_datetime(model.generated_at, lang))),
            normal),
        Paragraph(escape(locales.template("report.period", lang, period=model.period_label)), normal),
        Spacer(1, 8 * mm),
    ]

    right = [c.align == "right" for c in model.columns]
    if model.rows:
        data = [[Paragraph(escape(c.label), head_right if r else head) for c, r in zip(model.columns, right)]]
        for row in model.rows:
            data.append([Paragraph(escape(v), cell_right if r else cell) for v, r in zip(row.cells, right)])
        width = (pagesize[0] - doc.leftMargin - doc.rightMargin) / len(model.columns)
        table = Table(data, colWidths=[width] * len(model.columns), repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), HEADER_BG),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, ROW_ALT_BG]),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]))
        story.append(table)
    else:
        story.append(Paragraph(escape(locales.resolve("report.no_data", lang)), italic))

    if model.summary:
        story += [Spacer(1, 8 * mm), Paragraph(escape(locales.resolve("report.summary", lang)), heading)]
        summary = Table(
            [[Paragraph(escape(k), cell), Paragraph(escape(v), cell_right)] for k, v in model.summary.items()],
            colWidths=[70 * mm, 70 * mm],
            hAlign="LEFT",
        )
        summary.setStyle(TableStyle([("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.lightgrey)]))
        story.append(summary)

    doc.build(story)
    return buf.getvalue()


def render(model: ReportModel, fmt: str, locale_store: LocaleStore = None) -> RenderedReport:
    fmt = fmt.lower()
    if fmt == "csv":
        content = render_csv(model)
    elif fmt == "pdf":
        content = render_pdf(model, locale_store)
    else:
        raise InvalidReportRequestError(f"Unsupported report format '{fmt}'")
    return RenderedReport(content, report_filename(model, fmt), CONTENT_TYPES[fmt])
