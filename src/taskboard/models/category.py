from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.models.base import AuditMixin, Base, IntegerPrimaryKeyMixin


class Category(Base, IntegerPrimaryKeyMixin, AuditMixin):
    """A label tasks can be filed under."""

    __tablename__ = "categories"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
