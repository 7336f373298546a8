import logging
from decimal import Decimal
from typing import List, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from database.models import Sale
from services.access_policy import Identity, scope_to_identity
from services.clock import Clock, civil_today, month_bounds, utc_now
from services.errors import PersistenceError, ValidationError
from services.report_renderer import EarningsReport, ReportRenderer, ReportRow
from services.sale_service import CENT

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Cliente"
DEFAULT_USER_NAME = "Colaborador"


def parse_period(month, year) -> Tuple[int, int]:
    """Validates the month/year pair of a report request."""
    try:
        month = int(month)
    except (TypeError, ValueError):
        raise ValidationError("Provide a valid month and year")
    if not 1 <= month <= 12:
        raise ValidationError("Provide a valid month and year")

    try:
        year = int(year)
    except (TypeError, ValueError):
        raise ValidationError("Provide a valid month and year")
    if not 1 <= year < 9999:
        raise ValidationError("Provide a valid month and year")
    return month, year


class RevenueService:
    def __init__(self, renderer: ReportRenderer, clock: Clock = utc_now):
        self.renderer = renderer
        self.clock = clock

    def _sales_in_month(self, session: Session, requester: Identity, year: int, month: int, with_names: bool = False) -> List[Sale]:
        start, end = month_bounds(year, month)
        statement = (
            select(Sale)
            .where(Sale.occurred_at >= start, Sale.occurred_at < end)
            .order_by(Sale.occurred_at, Sale.id)
        )
        if with_names:
            statement = statement.options(selectinload(Sale.customer), selectinload(Sale.user))
        statement = scope_to_identity(statement, requester)
        try:
            return session.exec(statement).all()
        except SQLAlchemyError:
            logger.exception("Failed to load sales for %02d/%d", month, year)
            raise PersistenceError("Error fetching sales")

    def summarize(self, session: Session, requester: Identity) -> dict:
        """
        Day-to-date and month-to-date revenue, bucketed by the civil date in
        America/Sao_Paulo rather than by UTC.
        """
        today = civil_today(self.clock)
        sales = self._sales_in_month(session, requester, today.year, today.month)

        month_total = Decimal("0.00")
        day_total = Decimal("0.00")
        for s in sales:
            month_total += s.total
            if s.occurred_at.date() == today:
                day_total += s.total

        return {"dayTotal": day_total.quantize(CENT), "monthTotal": month_total.quantize(CENT)}

    def report_rows(self, session: Session, requester: Identity, month, year) -> EarningsReport:
        month, year = parse_period(month, year)
        sales = self._sales_in_month(session, requester, year, month, with_names=True)

        report = EarningsReport(month=month, year=year)
        total = Decimal("0.00")
        for index, s in enumerate(sales, start=1):
            report.rows.append(ReportRow(
                sequence=index,
                occurred_on=s.occurred_at.date(),
                customer_name=(s.customer.name if s.customer else None) or DEFAULT_CUSTOMER_NAME,
                user_name=(s.user.name if s.user else None) or DEFAULT_USER_NAME,
                amount=s.total,
            ))
            total += s.total
        report.total = total.quantize(CENT)
        return report

    def report(self, session: Session, requester: Identity, month, year) -> bytes:
        report = self.report_rows(session, requester, month, year)
        logger.info("Rendering earnings report %02d/%d with %d sales", report.month, report.year, len(report.rows))
        return self.renderer.render_report(report)
