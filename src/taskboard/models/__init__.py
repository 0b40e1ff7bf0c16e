from taskboard.models.base import AuditMixin, Base, IntegerPrimaryKeyMixin, UUIDPrimaryKeyMixin
from taskboard.models.category import Category
from taskboard.models.group import Group
from taskboard.models.project import Project, ProjectInvitee
from taskboard.models.task import Task, TaskAssignee
from taskboard.models.user import User

__all__ = [
    "Base",
    "UUIDPrimaryKeyMixin",
    "IntegerPrimaryKeyMixin",
    "AuditMixin",
    "Category",
    "Group",
    "Project",
    "ProjectInvitee",
    "Task",
    "TaskAssignee",
    "User",
]
