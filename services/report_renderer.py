"""
Report renderers — Turn a structured ProductionReport into a document.

Layout (both formats):
- Header: optional logo, title, document number and date, report period, page count
- One section row per production batch ("Lote de Produção")
- Per production run: formula, batch, produced quantity, then one line per
  raw material with the lots it was drawn from and the quantity used
- "Quantidade de ensaque" row closing every run
- PDF only: sign-off footer (Execução / Monitoramento / Verificação)

Renderers only read the report; lot usage strings are printed exactly as the
aggregator built them.
"""

from io import BytesIO
from pathlib import Path
from typing import Optional, Protocol

import structlog
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas as pdf_canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Table, TableStyle

from config import settings
from exceptions import RenderError
from models.production_report import ProductionReport, ReportFormat

logger = structlog.get_logger(__name__)

COLUMN_HEADERS = ["Fórmula / Matéria-Prima", "Lote", "Quantidade"]
GROUP_PREFIX = "Lote de Produção: "
BAGGING_ROW = "Quantidade de ensaque:"
SIGN_OFF_COLUMNS = ["Execução", "Monitoramento", "Verificação"]
EMPTY_REPORT_TEXT = "Nenhuma produção registrada no período."

HEADER_FILL_HEX = "FFF4CC"
GROUP_FILL_HEX = "EEEEEE"
RUN_FILL_HEX = "F2F2F2"


def format_quantity(value: float, unit: str = "") -> str:
    """12.5, 'kg' -> '12.50 kg'"""
    text = f"{value:.2f}"
    return f"{text} {unit}" if unit else text


def format_period(report: ProductionReport) -> str:
    """'01/06/2025 a 30/06/2025'"""
    return f"{report.from_date.strftime('%d/%m/%Y')} a {report.to_date.strftime('%d/%m/%Y')}"


class ReportRenderer(Protocol):
    """Structured report in, document bytes out."""

    name: str
    content_type: str
    extension: str

    def render(self, report: ProductionReport) -> bytes: ...


# ===================
# PDF
# ===================

class _NumberedCanvas(pdf_canvas.Canvas):
    """Canvas that knows the page total when each page is written."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_page_count(total)
            super().showPage()
        super().save()

    def _draw_page_count(self, total: int):
        _, height = A4
        self.setFont("Helvetica", 8)
        self.setFillColor(colors.HexColor("#666666"))
        self.drawString(12 * mm, height - 33 * mm, f"Página {self._pageNumber} de {total}")


class PdfReportRenderer:
    """Renders the report as an A4 portrait PDF with reportlab."""

    name = "reportlab"
    content_type = "application/pdf"
    extension = "pdf"

    def __init__(
        self,
        title: Optional[str] = None,
        document_code: Optional[str] = None,
        output_unit: Optional[str] = None,
        signatories: Optional[list[str]] = None,
        document_date: Optional[str] = None,
        logo_path: Optional[str] = None,
    ):
        self.title = title or settings.report_title
        self.document_code = document_code or settings.report_document_code
        self.document_date = document_date or settings.report_document_date
        self.logo_path = logo_path if logo_path is not None else settings.report_logo_path
        self.output_unit = output_unit if output_unit is not None else settings.report_output_unit
        # Footer always has one column per sign-off step
        names = list(signatories or settings.report_signatories)
        self.signatories = (names + [""] * len(SIGN_OFF_COLUMNS))[:len(SIGN_OFF_COLUMNS)]

    def render(self, report: ProductionReport) -> bytes:
        """
        Render the report to PDF bytes.

        Raises:
            RenderError: If reportlab fails to build the document
        """
        logger.info(
            "rendering_report_pdf",
            groups=len(report.groups),
            runs=report.run_count,
        )

        try:
            buffer = BytesIO()
            doc = SimpleDocTemplate(
                buffer,
                pagesize=A4,
                leftMargin=12 * mm,
                rightMargin=12 * mm,
                topMargin=38 * mm,
                bottomMargin=38 * mm,
                title=f"{self.title} ({format_period(report)})",
            )

            story = [self._build_table(report)]
            if report.is_empty:
                styles = getSampleStyleSheet()
                story.append(Paragraph(EMPTY_REPORT_TEXT, styles["Italic"]))

            def on_page(canvas, _doc):
                self._draw_header(canvas, report)
                self._draw_footer(canvas)

            doc.build(
                story,
                onFirstPage=on_page,
                onLaterPages=on_page,
                canvasmaker=_NumberedCanvas,
            )
            return buffer.getvalue()

        except Exception as e:
            logger.error("report_pdf_render_failed", error=str(e), error_type=type(e).__name__)
            raise RenderError(self.name, str(e)) from e

    def _build_table(self, report: ProductionReport) -> Table:
        rows: list[list[str]] = [list(COLUMN_HEADERS)]
        commands = [
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(f"#{HEADER_FILL_HEX}")),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("ALIGN", (0, 0), (-1, 0), "CENTER"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#DDDDDD")),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]

        for group in report.groups:
            r = len(rows)
            rows.append([f"{GROUP_PREFIX}{group.batch_label}", "", ""])
            commands += [
                ("SPAN", (0, r), (-1, r)),
                ("BACKGROUND", (0, r), (-1, r), colors.HexColor(f"#{GROUP_FILL_HEX}")),
                ("FONTNAME", (0, r), (-1, r), "Helvetica-Bold"),
            ]

            for block in group.runs:
                r = len(rows)
                rows.append([
                    block.formula_name,
                    block.batch_label,
                    format_quantity(block.quantity_produced, self.output_unit),
                ])
                commands += [
                    ("BACKGROUND", (0, r), (-1, r), colors.HexColor(f"#{RUN_FILL_HEX}")),
                    ("FONTNAME", (0, r), (-1, r), "Helvetica-Bold"),
                    ("ALIGN", (0, r), (1, r), "CENTER"),
                    ("ALIGN", (2, r), (2, r), "RIGHT"),
                ]

                for line in block.lines:
                    r = len(rows)
                    rows.append([
                        line.raw_material_name,
                        line.lots_used,
                        format_quantity(line.quantity_required, line.unit),
                    ])
                    commands += [
                        ("LEFTPADDING", (0, r), (0, r), 14),
                        ("ALIGN", (1, r), (1, r), "CENTER"),
                        ("ALIGN", (2, r), (2, r), "RIGHT"),
                    ]

                r = len(rows)
                rows.append([BAGGING_ROW, "", ""])
                commands += [
                    ("SPAN", (0, r), (-1, r)),
                    ("FONTNAME", (0, r), (-1, r), "Helvetica-Bold"),
                ]

        table = Table(rows, colWidths=[90 * mm, 50 * mm, 46 * mm], repeatRows=1)
        table.setStyle(TableStyle(commands))
        return table

    def _draw_header(self, canvas, report: ProductionReport):
        width, height = A4
        canvas.saveState()

        canvas.setFont("Helvetica-Bold", 14)
        canvas.drawCentredString(width / 2, height - 16 * mm, self.title)

        canvas.setFont("Helvetica", 9)
        canvas.drawRightString(width - 12 * mm, height - 13 * mm, f"Nº Documento: {self.document_code}")
        canvas.drawRightString(width - 12 * mm, height - 18 * mm, f"Data: {self.document_date}")

        # Logo is optional; the document is built without it
        if self.logo_path and Path(self.logo_path).is_file():
            canvas.drawImage(
                self.logo_path, 12 * mm, height - 20 * mm,
                width=30 * mm, height=10 * mm,
                preserveAspectRatio=True, anchor="w", mask="auto",
            )

        canvas.setFillColor(colors.HexColor("#F5F5F5"))
        canvas.roundRect(12 * mm, height - 29 * mm, width - 24 * mm, 8 * mm, 2 * mm, stroke=0, fill=1)
        canvas.setFillColor(colors.black)
        canvas.setFont("Helvetica-Bold", 9)
        canvas.drawString(15 * mm, height - 26 * mm, f"Período: {format_period(report)}")

        canvas.restoreState()

    def _draw_footer(self, canvas):
        width, _ = A4
        data = [
            list(SIGN_OFF_COLUMNS),
            [f"Responsável: {name}" for name in self.signatories],
            ["Data:"] * 3,
            ["Assinatura:"] * 3,
        ]
        table = Table(data, colWidths=[(width - 24 * mm) / 3] * 3)
        table.setStyle(TableStyle([
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(f"#{HEADER_FILL_HEX}")),
            ("ALIGN", (0, 0), (-1, 0), "CENTER"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#CCCCCC")),
        ]))

        canvas.saveState()
        table.wrapOn(canvas, width - 24 * mm, 30 * mm)
        table.drawOn(canvas, 12 * mm, 8 * mm)
        canvas.restoreState()


# ===================
# EXCEL
# ===================

class ExcelReportRenderer:
    """Renders the report as a single-sheet workbook with openpyxl."""

    name = "openpyxl"
    content_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    extension = "xlsx"

    def __init__(
        self,
        title: Optional[str] = None,
        document_code: Optional[str] = None,
        output_unit: Optional[str] = None,
        document_date: Optional[str] = None,
    ):
        self.title = title or settings.report_title
        self.document_code = document_code or settings.report_document_code
        self.document_date = document_date or settings.report_document_date
        self.output_unit = output_unit if output_unit is not None else settings.report_output_unit

    def render(self, report: ProductionReport) -> bytes:
        """
        Render the report to XLSX bytes.

        Raises:
            RenderError: If the workbook cannot be written
        """
        logger.info(
            "rendering_report_excel",
            groups=len(report.groups),
            runs=report.run_count,
        )

        try:
            wb = Workbook()
            ws = wb.active
            ws.title = "Produção"

            # Styles
            bold_font = Font(bold=True)
            title_font = Font(bold=True, size=14)
            thin_border = Border(bottom=Side(style="thin", color="DDDDDD"))
            header_fill = PatternFill(start_color=HEADER_FILL_HEX, end_color=HEADER_FILL_HEX, fill_type="solid")
            group_fill = PatternFill(start_color=GROUP_FILL_HEX, end_color=GROUP_FILL_HEX, fill_type="solid")
            run_fill = PatternFill(start_color=RUN_FILL_HEX, end_color=RUN_FILL_HEX, fill_type="solid")
            center = Alignment(horizontal="center")
            right = Alignment(horizontal="right")

            ws.column_dimensions["A"].width = 45
            ws.column_dimensions["B"].width = 25
            ws.column_dimensions["C"].width = 18

            # Rows 1-3: header block
            ws["A1"] = self.title
            ws["A1"].font = title_font
            ws["C1"] = f"Nº Documento: {self.document_code}"
            ws["C2"] = f"Data: {self.document_date}"
            ws["A2"] = f"Período: {format_period(report)}"
            ws["A2"].font = bold_font

            # Row 4: column headers
            row = 4
            for col, header in zip("ABC", COLUMN_HEADERS):
                cell = ws[f"{col}{row}"]
                cell.value = header
                cell.font = bold_font
                cell.fill = header_fill
                cell.alignment = center
                cell.border = thin_border
            row += 1

            for group in report.groups:
                ws[f"A{row}"] = f"{GROUP_PREFIX}{group.batch_label}"
                ws[f"A{row}"].font = bold_font
                ws.merge_cells(f"A{row}:C{row}")
                ws[f"A{row}"].fill = group_fill
                row += 1

                for block in group.runs:
                    ws[f"A{row}"] = block.formula_name
                    ws[f"B{row}"] = block.batch_label
                    ws[f"C{row}"] = format_quantity(block.quantity_produced, self.output_unit)
                    for col in "ABC":
                        ws[f"{col}{row}"].font = bold_font
                        ws[f"{col}{row}"].fill = run_fill
                    ws[f"A{row}"].alignment = center
                    ws[f"B{row}"].alignment = center
                    ws[f"C{row}"].alignment = right
                    row += 1

                    for line in block.lines:
                        ws[f"A{row}"] = line.raw_material_name
                        ws[f"A{row}"].alignment = Alignment(indent=1)
                        ws[f"B{row}"] = line.lots_used
                        ws[f"B{row}"].alignment = center
                        ws[f"C{row}"] = format_quantity(line.quantity_required, line.unit)
                        ws[f"C{row}"].alignment = right
                        row += 1

                    ws[f"A{row}"] = BAGGING_ROW
                    ws[f"A{row}"].font = bold_font
                    ws.merge_cells(f"A{row}:C{row}")
                    row += 1

            if report.is_empty:
                ws[f"A{row}"] = EMPTY_REPORT_TEXT

            output = BytesIO()
            wb.save(output)
            return output.getvalue()

        except Exception as e:
            logger.error("report_excel_render_failed", error=str(e), error_type=type(e).__name__)
            raise RenderError(self.name, str(e)) from e


def get_report_renderer(report_format: ReportFormat) -> ReportRenderer:
    """Pick the renderer for a document format."""
    if report_format == ReportFormat.XLSX:
        return ExcelReportRenderer()
    return PdfReportRenderer()
