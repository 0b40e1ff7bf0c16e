from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint, false
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.models.base import AuditMixin, Base, IntegerPrimaryKeyMixin


class Task(Base, IntegerPrimaryKeyMixin, AuditMixin):
    """A unit of work inside a project, assignable to users."""

    __tablename__ = "tasks"

    title: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    deadline: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    unique_id: Mapped[str] = mapped_column(
        String(36), nullable=False, default=lambda: str(uuid4())
    )
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[int | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    group_id: Mapped[int | None] = mapped_column(
        ForeignKey("groups.id", ondelete="SET NULL"), nullable=True
    )
    user_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )


class TaskAssignee(Base, IntegerPrimaryKeyMixin, AuditMixin):
    """Join entity between a task and an assigned user, with the supervisor flag."""

    __tablename__ = "task_user"
    __table_args__ = (
        UniqueConstraint("task_id", "user_id", name="uq_task_user_task_user"),
    )

    task_id: Mapped[int] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    is_supervisor: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
