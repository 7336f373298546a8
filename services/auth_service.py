import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from database.models import User, ROLES, ROLE_COLLABORATOR
from services.access_policy import Identity
from services.errors import ValidationError, Unauthorized, PersistenceError

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"
TOKEN_TTL = timedelta(days=30)

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72

# Compared against when the email is unknown so both failure paths cost a bcrypt check
_DUMMY_HASH = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt()).decode("utf-8")


def _required(value: Optional[str]) -> bool:
    return isinstance(value, str) and value.strip() != ""


class AuthService:
    def __init__(self, secret: Optional[str] = None, token_ttl: timedelta = TOKEN_TTL):
        secret = secret or os.getenv("JWT_SECRET")
        if not secret:
            logger.warning("JWT_SECRET not set, tokens will not survive a restart")
            secret = secrets.token_urlsafe(32)
        self.secret = secret
        self.token_ttl = token_ttl

    # --- Passwords ---

    @staticmethod
    def get_password_hash(password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False

    # --- Tokens ---

    def create_access_token(self, user: User) -> str:
        payload = {
            "id": user.id,
            "role": user.role,
            "exp": datetime.now(timezone.utc) + self.token_ttl,
        }
        return jwt.encode(payload, self.secret, algorithm=TOKEN_ALGORITHM)

    def decode_access_token(self, token: Optional[str]) -> Identity:
        if not token:
            raise Unauthorized(Unauthorized.NO_TOKEN)
        try:
            payload = jwt.decode(token, self.secret, algorithms=[TOKEN_ALGORITHM])
        except jwt.PyJWTError:
            raise Unauthorized(Unauthorized.INVALID_TOKEN)

        user_id = payload.get("id")
        role = payload.get("role")
        if not isinstance(user_id, int) or role not in ROLES:
            raise Unauthorized(Unauthorized.INVALID_TOKEN)
        return Identity(user_id=user_id, role=role)

    # --- Accounts ---

    def register_user(self, session: Session, name: str, email: str, password: str, role: Optional[str] = None) -> User:
        if not (_required(name) and _required(email) and _required(password)):
            raise ValidationError("Name, email and password are required")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        role = role or ROLE_COLLABORATOR
        if role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")

        user = User(
            name=name.strip(),
            email=email.strip().lower(),
            password_hash=self.get_password_hash(password),
            role=role,
        )
        session.add(user)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise ValidationError("Email already registered")
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Failed to register user")
            raise PersistenceError("Error registering user")
        session.refresh(user)
        logger.info("Registered user %s with role %s", user.id, user.role)
        return user

    def authenticate(self, session: Session, email: str, password: str) -> User:
        if not (_required(email) and _required(password)):
            raise ValidationError("Email and password are required")
        try:
            user = session.exec(select(User).where(User.email == email.strip().lower())).first()
        except SQLAlchemyError:
            logger.exception("Failed to look up user for login")
            raise PersistenceError("Error trying to log in")

        if not user:
            self.verify_password(password, _DUMMY_HASH)
            raise Unauthorized(Unauthorized.BAD_CREDENTIALS)
        if not self.verify_password(password, user.password_hash):
            raise Unauthorized(Unauthorized.BAD_CREDENTIALS)
        return user
