"""SQLAlchemy table definitions for the audited data client.

Every auditable table carries the same four audit columns; ``created_by`` and
``updated_by`` reference ``users.id``, which is why the system user row must
exist before the first unattributed write.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _id_column() -> Column:
    return Column("id", String(36), primary_key=True, default=_new_id)


def _audit_columns() -> list[Column]:
    """Fresh audit columns; a Column object belongs to exactly one table."""
    return [
        Column("created_at", DateTime(timezone=True), nullable=False, default=_utcnow),
        Column(
            "updated_at",
            DateTime(timezone=True),
            nullable=False,
            default=_utcnow,
            onupdate=_utcnow,
        ),
        Column("created_by", String(36), ForeignKey("users.id"), nullable=True),
        Column("updated_by", String(36), ForeignKey("users.id"), nullable=True),
    ]


users = Table(
    "users",
    metadata,
    _id_column(),
    Column("email", String(255), nullable=False, unique=True),
    Column("username", String(100), nullable=False, unique=True),
    Column("first_name", String(100), nullable=False, default=""),
    Column("last_name", String(100), nullable=False, default=""),
    Column("password", String(255), nullable=True),
    Column("role", String(32), nullable=False, default="MEMBER"),
    Column("status", String(32), nullable=False, default="ACTIVE"),
    Column("bio", Text, nullable=True),
    Column("timezone", String(64), nullable=False, default="UTC"),
    Column("language", String(16), nullable=False, default="en"),
    Column("preferences", JSON, nullable=True),
    *_audit_columns(),
)

organizations = Table(
    "organizations",
    metadata,
    _id_column(),
    Column("name", String(255), nullable=False),
    Column("slug", String(255), nullable=False, unique=True),
    Column("description", Text, nullable=True),
    Column("owner_id", String(36), ForeignKey("users.id"), nullable=True),
    *_audit_columns(),
)

workspaces = Table(
    "workspaces",
    metadata,
    _id_column(),
    Column(
        "organization_id", String(36), ForeignKey("organizations.id"), nullable=False
    ),
    Column("name", String(255), nullable=False),
    Column("slug", String(255), nullable=False),
    Column("description", Text, nullable=True),
    *_audit_columns(),
    UniqueConstraint("organization_id", "slug", name="uq_workspaces_org_slug"),
)

projects = Table(
    "projects",
    metadata,
    _id_column(),
    Column("workspace_id", String(36), ForeignKey("workspaces.id"), nullable=False),
    Column("name", String(255), nullable=False),
    Column("slug", String(255), nullable=False),
    Column("description", Text, nullable=True),
    Column("status", String(32), nullable=False, default="ACTIVE"),
    *_audit_columns(),
    UniqueConstraint("workspace_id", "slug", name="uq_projects_workspace_slug"),
)

task_statuses = Table(
    "task_statuses",
    metadata,
    _id_column(),
    Column("name", String(100), nullable=False),
    Column("color", String(16), nullable=False, default="#6b7280"),
    Column("category", String(32), nullable=False, default="TODO"),
    Column("position", Integer, nullable=False, default=0),
    *_audit_columns(),
)

tasks = Table(
    "tasks",
    metadata,
    _id_column(),
    Column("project_id", String(36), ForeignKey("projects.id"), nullable=True),
    Column("status_id", String(36), ForeignKey("task_statuses.id"), nullable=True),
    Column("assignee_id", String(36), ForeignKey("users.id"), nullable=True),
    Column("title", String(500), nullable=False),
    Column("description", Text, nullable=True),
    Column("priority", String(16), nullable=False, default="MEDIUM"),
    Column("due_date", DateTime(timezone=True), nullable=True),
    *_audit_columns(),
)

task_comments = Table(
    "task_comments",
    metadata,
    _id_column(),
    Column("task_id", String(36), ForeignKey("tasks.id"), nullable=False),
    Column("author_id", String(36), ForeignKey("users.id"), nullable=False),
    Column("content", Text, nullable=False),
    *_audit_columns(),
)

# Not an auditable model: writes pass through the middleware untouched.
settings = Table(
    "settings",
    metadata,
    Column("key", String(255), primary_key=True),
    Column("value", Text, nullable=False),
    Column("description", Text, nullable=True),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    ),
)

MODEL_TABLES: dict[str, Table] = {
    "User": users,
    "Organization": organizations,
    "Workspace": workspaces,
    "Project": projects,
    "TaskStatus": task_statuses,
    "Task": tasks,
    "TaskComment": task_comments,
    "Setting": settings,
}
