from dataclasses import dataclass

from database.models import Sale, ROLE_ADMIN
from services.errors import Forbidden


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as carried by the bearer token."""
    user_id: int
    role: str


def is_admin(identity: Identity) -> bool:
    return identity.role == ROLE_ADMIN


def can_act_on(identity: Identity, owner_user_id: int) -> bool:
    return is_admin(identity) or identity.user_id == owner_user_id


def ensure_can_act_on(identity: Identity, owner_user_id: int):
    if not can_act_on(identity, owner_user_id):
        raise Forbidden()


def scope_to_identity(statement, identity: Identity):
    # Non-admins only ever see the sales they recorded
    if is_admin(identity):
        return statement
    return statement.where(Sale.user_id == identity.user_id)
