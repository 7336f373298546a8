import logging
from decimal import Decimal

from sqlmodel import Session, select, func

from database.models import ServiceType, User, ROLE_ADMIN
from services.auth_service import AuthService

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_TYPES = [
    {"name": "Corte", "default_price": Decimal("35.00")},
    {"name": "Barba", "default_price": Decimal("25.00")},
    {"name": "Corte + Barba", "default_price": Decimal("55.00")},
    {"name": "Sobrancelha", "default_price": Decimal("15.00")},
    {"name": "Pigmentação", "default_price": Decimal("30.00")},
]


def seed_service_types(session: Session) -> int:
    """Adds the default catalog when no service type exists yet. Returns how many were added."""
    existing = session.exec(select(func.count(ServiceType.id))).one()
    if existing:
        return 0

    for data in DEFAULT_SERVICE_TYPES:
        session.add(ServiceType(**data))
        logger.info("Adding service type: %s", data["name"])
    session.commit()
    return len(DEFAULT_SERVICE_TYPES)


def seed_admin(session: Session, name: str, email: str, password: str, reset_password: bool = False) -> User:
    """
    Makes sure an admin account exists for the given email.
    With reset_password the stored password is replaced and the role forced to admin.
    """
    email = email.strip().lower()
    user = session.exec(select(User).where(User.email == email)).first()
    if user and not reset_password:
        return user

    password_hash = AuthService.get_password_hash(password)
    if user:
        logger.info("Resetting password of admin %s", user.id)
        user.password_hash = password_hash
        user.role = ROLE_ADMIN
    else:
        user = User(name=name, email=email, password_hash=password_hash, role=ROLE_ADMIN)
        logger.info("Creating admin account for %s", email)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user
