import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from database.models import Customer, Sale, SaleLineItem, ServiceType
from services.access_policy import Identity, ensure_can_act_on, scope_to_identity
from services.clock import Clock, to_civil, utc_now
from services.errors import NotFound, PersistenceError, ValidationError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# Money columns are NUMERIC(10, 2)
MAX_AMOUNT = Decimal("1e8")


def parse_amount(value, field: str) -> Decimal:
    """Turns a client supplied amount into a two-place Decimal, half cents rounded up."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        # str() first so floats keep the digits the client sent
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValidationError(f"{field} must be a number")
        if abs(amount) >= MAX_AMOUNT:
            raise ValidationError(f"{field} is too large")
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")


def format_amount(amount) -> str:
    """Two-place string for money sent to clients, e.g. "60.50"."""
    return str(Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class DeletionResult:
    sale_id: int
    deleted_customer: bool


class SaleService:
    def __init__(self, clock: Clock = utc_now):
        self.clock = clock

    def record_sale(self, session: Session, customer_id: Optional[int], total, items: Optional[List[dict]], recording_user_id: int) -> int:
        """
        Creates a Sale header and its line items as one transaction.
        items expected format: [{"service_type_id": 1, "charged_amount": "35.00"}, ...]
        Returns the id of the new sale.
        """
        if not customer_id or total is None or not items:
            raise ValidationError("Incomplete data to record the sale")

        total = parse_amount(total, "total")
        if total <= 0:
            raise ValidationError("total must be positive")

        lines = []
        for index, item in enumerate(items):
            service_type_id = item.get("service_type_id")
            if not service_type_id:
                raise ValidationError(f"items[{index}].serviceTypeId is required")
            charged_amount = parse_amount(item.get("charged_amount"), f"items[{index}].chargedAmount")
            if charged_amount < 0:
                raise ValidationError(f"items[{index}].chargedAmount must not be negative")
            lines.append((service_type_id, charged_amount))

        try:
            customer = session.get(Customer, customer_id)
            service_type_ids = {service_type_id for service_type_id, _ in lines}
            known_ids = set(session.exec(select(ServiceType.id).where(ServiceType.id.in_(sorted(service_type_ids)))).all())
        except SQLAlchemyError:
            logger.exception("Failed to look up sale references")
            raise PersistenceError("Error recording the sale")

        if not customer:
            raise ValidationError(f"Customer {customer_id} does not exist")
        unknown = sorted(service_type_ids - known_ids)
        if unknown:
            raise ValidationError(f"Unknown service types: {', '.join(str(i) for i in unknown)}")

        items_sum = sum((amount for _, amount in lines), Decimal("0.00"))
        if items_sum != total:
            # Client total is trusted as sent, only flagged
            logger.warning("Sale total %s differs from line item sum %s", total, items_sum)

        sale = Sale(
            customer_id=customer_id,
            user_id=recording_user_id,
            total=total,
            occurred_at=to_civil(self.clock()),
        )
        try:
            session.add(sale)
            # Flush to get the header id before tagging the line items
            session.flush()
            sale_id = sale.id
            for service_type_id, charged_amount in lines:
                session.add(SaleLineItem(
                    sale_id=sale_id,
                    service_type_id=service_type_id,
                    charged_amount=charged_amount,
                ))
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Failed to record sale for customer %s", customer_id)
            raise PersistenceError("Error recording the sale")

        logger.info("Recorded sale %s with %d items by user %s", sale_id, len(lines), recording_user_id)
        return sale_id

    def delete_sale(self, session: Session, sale_id: int, requester: Identity) -> DeletionResult:
        """
        Deletes a sale with its line items, then the customer if no other sale
        references it. Everything after the permission check is one transaction.
        """
        try:
            sale = session.get(Sale, sale_id)
        except SQLAlchemyError:
            logger.exception("Failed to fetch sale %s", sale_id)
            raise PersistenceError("Error deleting sale/customer")

        if not sale:
            raise NotFound("Sale not found")
        ensure_can_act_on(requester, sale.user_id)

        customer_id = sale.customer_id
        try:
            # Row lock serializes concurrent orphan checks on the same customer
            session.exec(select(Customer).where(Customer.id == customer_id).with_for_update()).first()

            session.exec(delete(SaleLineItem).where(SaleLineItem.sale_id == sale_id))
            session.exec(delete(Sale).where(Sale.id == sale_id))

            remaining = session.exec(
                select(func.count(Sale.id)).where(Sale.customer_id == customer_id)
            ).one()
            deleted_customer = remaining == 0
            if deleted_customer:
                session.exec(delete(Customer).where(Customer.id == customer_id))

            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Failed to delete sale %s", sale_id)
            raise PersistenceError("Error deleting sale/customer")

        logger.info("Deleted sale %s (customer %s removed: %s)", sale_id, customer_id, deleted_customer)
        return DeletionResult(sale_id=sale_id, deleted_customer=deleted_customer)

    def list_history(self, session: Session, requester: Identity) -> List[dict]:
        statement = (
            select(Sale)
            .options(
                selectinload(Sale.user),
                selectinload(Sale.customer),
                selectinload(Sale.items).selectinload(SaleLineItem.service_type),
            )
            .order_by(Sale.occurred_at.desc(), Sale.id.desc())
        )
        statement = scope_to_identity(statement, requester)
        try:
            sales = session.exec(statement).all()
        except SQLAlchemyError:
            logger.exception("Failed to load sales history")
            raise PersistenceError("Error fetching history")

        history = []
        for s in sales:
            history.append({
                "id": s.id,
                "total": format_amount(s.total),
                "occurredAt": s.occurred_at.isoformat(),
                "userId": s.user_id,
                "userName": s.user.name if s.user else None,
                "customerId": s.customer_id,
                "customerName": s.customer.name if s.customer else None,
                "items": [
                    {
                        "id": i.id,
                        "chargedAmount": format_amount(i.charged_amount),
                        "serviceTypeId": i.service_type_id,
                        "serviceTypeName": i.service_type.name if i.service_type else None,
                    }
                    for i in sorted(s.items, key=lambda i: i.id)
                ],
            })
        return history
