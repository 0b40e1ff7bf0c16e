import hashlib
import hmac
import secrets
from uuid import uuid4

from sqlalchemy import Boolean, String, true
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.models.base import AuditMixin, Base, UUIDPrimaryKeyMixin

_PBKDF2_ITERATIONS = 260_000


def hash_password(password: str, salt: str | None = None) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>`` for a password."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), salt.encode(), _PBKDF2_ITERATIONS
    )
    return f"pbkdf2_sha256${_PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    _, _, salt, _ = encoded.split("$", 3)
    return hmac.compare_digest(hash_password(password, salt), encoded)


def _default_username(context) -> str:
    email = context.get_current_parameters().get("email") or "user"
    return f"{email.split('@', 1)[0]}-{uuid4().hex[:6]}"


class User(Base, UUIDPrimaryKeyMixin, AuditMixin):
    """An account that owns projects and is assigned to tasks."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, default=_default_username
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), server_default="member", nullable=False
    )
    profile_avatar: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[bool] = mapped_column(
        Boolean, server_default=true(), nullable=False
    )

    @property
    def password(self) -> None:
        raise AttributeError("password is write-only")

    @password.setter
    def password(self, value: str) -> None:
        self.password_hash = hash_password(value)
