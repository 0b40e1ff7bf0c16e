from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.models.base import AuditMixin, Base, IntegerPrimaryKeyMixin


class Project(Base, IntegerPrimaryKeyMixin, AuditMixin):
    """A project created by a user, grouping tasks and invitees."""

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    user_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )


class ProjectInvitee(Base, IntegerPrimaryKeyMixin, AuditMixin):
    """Membership of a user in a project's invitee list."""

    __tablename__ = "project_user"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_user_project_user"),
    )

    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
