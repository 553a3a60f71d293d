"""SQLModel ORM tables for job, script and execution storage."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Text, text
from sqlmodel import Field, SQLModel

DEFAULT_OWNER_ID = "default_user"


class GenerationJob(SQLModel, table=True):
    __tablename__ = "jobs"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_jobs_owner_created", "owner_id", "created_at"),)

    job_id: str = Field(primary_key=True)
    owner_id: str = Field(index=True)
    kind: str = Field(index=True)
    status: str = Field(index=True)
    input_json: str = Field(sa_column=Column(Text, nullable=False))
    result_json: str | None = Field(default=None, sa_column=Column(Text))
    error: str | None = Field(default=None, sa_column=Column(Text))
    progress: int = Field(default=0, sa_column_kwargs={"server_default": text("0")})
    started_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    completed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class Script(SQLModel, table=True):
    __tablename__ = "scripts"  # type: ignore[bad-override]

    script_id: str = Field(primary_key=True)
    owner_id: str = Field(index=True)
    name: str = Field(index=True)
    description: str = Field(
        default="",
        sa_column=Column(Text, nullable=False, server_default=""),
    )
    tags_json: str = Field(
        default="[]",
        sa_column=Column(Text, nullable=False, server_default="[]"),
    )
    content: str = Field(sa_column=Column(Text, nullable=False))
    requirements_json: str = Field(
        default="[]",
        sa_column=Column(Text, nullable=False, server_default="[]"),
    )
    metadata_json: str | None = Field(default=None, sa_column=Column(Text))
    last_run_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ScriptExecution(SQLModel, table=True):
    __tablename__ = "script_executions"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_script_executions_script_time", "script_id", "created_at"),)

    execution_id: str = Field(primary_key=True)
    script_id: str = Field(
        sa_column=Column(
            ForeignKey("scripts.script_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    triggered_by: str
    status: str = Field(index=True)
    inputs_json: str | None = Field(default=None, sa_column=Column(Text))
    stdout: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    stderr: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    exit_code: int | None = None
    duration_ms: int | None = None
    started_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    completed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    is_scheduled: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("0")),
    )
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
