from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.models.base import AuditMixin, Base, IntegerPrimaryKeyMixin


class Group(Base, IntegerPrimaryKeyMixin, AuditMixin):
    """A named column of tasks inside a project board."""

    __tablename__ = "groups"

    title: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
