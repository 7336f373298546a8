import io
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer


@dataclass(frozen=True)
class ReportRow:
    sequence: int
    occurred_on: date
    customer_name: str
    user_name: str
    amount: Decimal


@dataclass
class EarningsReport:
    month: int
    year: int
    rows: List[ReportRow] = field(default_factory=list)
    total: Decimal = Decimal("0.00")


class ReportRenderer(ABC):
    @abstractmethod
    def render_report(self, report: EarningsReport) -> bytes:
        """
        Renders an earnings report into a downloadable document.
        """
        pass


def format_brl(amount: Decimal) -> str:
    """1234.5 -> 'R$ 1.234,50'"""
    text = f"{amount:,.2f}"
    return "R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_row(row: ReportRow) -> str:
    return (
        f"{row.sequence}. {row.occurred_on.strftime('%d/%m/%Y')} - "
        f"{row.customer_name} - {row.user_name} - {format_brl(row.amount)}"
    )


class PdfReportRenderer(ReportRenderer):
    def __init__(self, business_name: str = None):
        self.business_name = business_name or os.getenv("BUSINESS_NAME", "Barbearia")
        self.styles = getSampleStyleSheet()
        self.heading_style = ParagraphStyle(
            "ReportHeading",
            parent=self.styles["Heading1"],
            fontSize=18,
            alignment=TA_CENTER,
            spaceAfter=12,
        )
        self.title_style = ParagraphStyle(
            "ReportTitle",
            parent=self.styles["Heading2"],
            fontSize=14,
            alignment=TA_CENTER,
            spaceAfter=12,
        )
        self.body_style = ParagraphStyle(
            "ReportBody",
            parent=self.styles["Normal"],
            fontSize=12,
            leading=16,
        )
        self.total_style = ParagraphStyle(
            "ReportTotal",
            parent=self.styles["Normal"],
            fontSize=14,
            leading=18,
            alignment=TA_RIGHT,
            textColor=colors.black,
            fontName="Helvetica-Bold",
        )

    def title(self, report: EarningsReport) -> str:
        return f"Relatório de Ganhos - {report.month}/{report.year}"

    def render_report(self, report: EarningsReport) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=50,
            rightMargin=50,
            topMargin=50,
            bottomMargin=50,
            title=self.title(report),
        )

        story = [
            Paragraph(escape(self.business_name), self.heading_style),
            Paragraph(escape(self.title(report)), self.title_style),
            Spacer(1, 12),
        ]
        if not report.rows:
            story.append(Paragraph("Nenhuma venda no período.", self.body_style))
        for row in report.rows:
            story.append(Paragraph(escape(format_row(row)), self.body_style))

        story.append(Spacer(1, 18))
        story.append(Paragraph(f"Total Geral: {format_brl(report.total)}", self.total_style))

        doc.build(story)
        return buffer.getvalue()
