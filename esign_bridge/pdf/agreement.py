"""
Agreement PDF generator.
Renders caller-supplied key/value pairs as a two-column table, in memory.
"""
import io
import logging
import re
from typing import Any, Dict, Mapping, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch, mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Client Agreement"
FONT_NORMAL = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")


def humanize_key(key: str) -> str:
    """clientName -> Client Name, first_name -> First_name"""
    spaced = _CAMEL_BOUNDARY.sub(r"\1 \2", str(key))
    return " ".join(word[:1].upper() + word[1:] for word in spaced.split(" "))


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple)):
        return ", ".join(_format_value(v) for v in value)
    return str(value)


class AgreementPdfGenerator:
    """A4 page, 1 inch margins, centred title, Key/Value grid, page footer."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        self.styles.add(ParagraphStyle(
            name='AgreementTitle',
            parent=self.styles['Title'],
            fontName=FONT_BOLD,
            fontSize=16,
            alignment=TA_CENTER,
            spaceAfter=20,
        ))
        self.styles.add(ParagraphStyle(
            name='Cell',
            parent=self.styles['Normal'],
            fontName=FONT_NORMAL,
            fontSize=12,
            leading=15,
        ))
        self.styles.add(ParagraphStyle(
            name='HeaderCell',
            parent=self.styles['Normal'],
            fontName=FONT_BOLD,
            fontSize=12,
            leading=15,
        ))

    def _draw_footer(self, canvas, doc):
        canvas.saveState()
        canvas.setFont(FONT_NORMAL, 9)
        canvas.setFillColor(colors.grey)
        canvas.drawCentredString(A4[0] / 2, 0.5 * inch, f"Page {doc.page}")
        canvas.restoreState()

    def _build_table(self, data: Mapping[str, Any]) -> Table:
        rows = [[
            Paragraph("Key", self.styles['HeaderCell']),
            Paragraph("Value", self.styles['HeaderCell']),
        ]]
        for key, value in data.items():
            rows.append([
                Paragraph(escape(humanize_key(key)), self.styles['Cell']),
                Paragraph(escape(_format_value(value)), self.styles['Cell']),
            ])

        usable_width = A4[0] - 2 * inch
        table = Table(rows, colWidths=[usable_width * 0.4, usable_width * 0.6], repeatRows=1)
        table.setStyle(TableStyle([
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('TOPPADDING', (0, 0), (-1, -1), 5),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
            ('LEFTPADDING', (0, 0), (-1, -1), 5),
            ('RIGHTPADDING', (0, 0), (-1, -1), 5),
        ]))
        return table

    def generate(self, data: Optional[Dict[str, Any]], title: str = DEFAULT_TITLE) -> bytes:
        """
        Render the agreement and return the PDF bytes.

        Args:
            data: Key/value pairs in display order
            title: Heading shown above the table

        Returns:
            PDF content
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=inch,
            leftMargin=inch,
            topMargin=inch,
            bottomMargin=inch,
            title=title,
        )

        elements = [
            Paragraph(escape(title or DEFAULT_TITLE), self.styles['AgreementTitle']),
            Spacer(1, 5 * mm),
            self._build_table(data or {}),
        ]
        doc.build(elements, onFirstPage=self._draw_footer, onLaterPages=self._draw_footer)

        pdf_bytes = buffer.getvalue()
        logger.info(f"Generated agreement PDF: {len(data or {})} rows, {len(pdf_bytes)} bytes")
        return pdf_bytes


# Singleton instance
_agreement_generator: Optional[AgreementPdfGenerator] = None


def get_agreement_generator() -> AgreementPdfGenerator:
    """Get the agreement generator singleton."""
    global _agreement_generator
    if _agreement_generator is None:
        _agreement_generator = AgreementPdfGenerator()
    return _agreement_generator
