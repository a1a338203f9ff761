"""
Pydantic models for task requests, task state snapshots and pushed task events.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from adx_batch.exceptions import ValidationFailure

from .config import TaskOptions


class TaskStatus(str, Enum):
    """Status values reported by the engine for a task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED}
)

_WIRE_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    str_strip_whitespace=True,
)


def ensure_adx_extension(path: str) -> str:
    """Appends `.adx` unless the path already ends with it (case-insensitive)."""
    if re.search(r"\.adx$", path, re.IGNORECASE):
        return path
    return f"{path}.adx"


class TaskRequest(BaseModel):
    """An immutable, validated request to start one download task."""

    model_config = _WIRE_CONFIG

    selected_manifest_paths: list[str]
    output_dir: str
    connect_sid: str
    auth_mode: Literal["key", "captcha"] = "key"
    key: Optional[str] = None
    captcha: Optional[str] = None
    download_no_bga: bool = False
    output_format: Literal["adx", "zip"] = "adx"
    auto_bundle: bool = False
    bundle_output_path: Optional[str] = None
    retries: Optional[int] = Field(default=None, ge=0)
    request_interval_ms: Optional[int] = Field(default=None, ge=0)

    @field_validator("selected_manifest_paths")
    @classmethod
    def dedupe_paths(cls, v: list[str]) -> list[str]:
        """Drops blanks and duplicates while keeping the first-seen order."""
        paths = list(dict.fromkeys(p.strip() for p in v if p and p.strip()))
        if not paths:
            raise ValueError("selectedManifestPaths is empty")
        return paths

    @field_validator("output_dir", "connect_sid")
    @classmethod
    def require_text(cls, v: str, info) -> str:
        if not v:
            raise ValueError(f"{to_camel(info.field_name)} is required")
        return v

    @field_validator("bundle_output_path")
    @classmethod
    def normalize_bundle_path(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        return ensure_adx_extension(v)

    @model_validator(mode="after")
    def validate_auth_secret(self) -> "TaskRequest":
        """The secret for the selected auth mode must be present."""
        if self.auth_mode == "key" and not self.key:
            raise ValueError("key is required when authMode=key")
        if self.auth_mode == "captcha" and not self.captcha:
            raise ValueError("captcha is required when authMode=captcha")
        return self

    @classmethod
    def from_options(
        cls, selected_paths: list[str], options: TaskOptions
    ) -> "TaskRequest":
        """
        Builds a request from the selected paths and the form-level options.

        Only the secret matching `auth_mode` is carried over.

        Raises:
            ValidationFailure: If any required field is missing or invalid.
        """
        try:
            return cls(
                selected_manifest_paths=selected_paths,
                output_dir=options.output_dir,
                connect_sid=options.connect_sid,
                auth_mode=options.auth_mode,
                key=options.key if options.auth_mode == "key" else None,
                captcha=options.captcha if options.auth_mode == "captcha" else None,
                download_no_bga=options.download_no_bga,
                output_format=options.output_format,
                auto_bundle=options.auto_bundle,
                bundle_output_path=options.bundle_output_path,
                retries=options.retries,
                request_interval_ms=options.request_interval_ms,
            )
        except ValidationError as e:
            raise ValidationFailure(_first_error(e)) from e

    def to_wire(self) -> dict:
        """Serializes the request with the engine's camelCase field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    msg = details[0]["msg"]
    return msg.removeprefix("Value error, ")


class FailItem(BaseModel):
    model_config = _WIRE_CONFIG

    id: str
    reason: str = ""


class Task(BaseModel):
    """The engine's authoritative snapshot of one task execution."""

    model_config = _WIRE_CONFIG

    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    total_ids: int = 0
    processed_ids: int = 0
    ok_count: int = 0
    skip_count: int = 0
    fail_count: int = 0
    new_files_count: int = 0
    bundle_output_path: Optional[str] = None
    fail_items: list[FailItem] = Field(default_factory=list)
    logs: list[str] = Field(default_factory=list)
    started_at: Optional[str] = None
    ended_at: Optional[str] = None
    message: Optional[str] = None


class EventEnvelope(BaseModel):
    """A pushed notification about a task."""

    model_config = _WIRE_CONFIG

    task_id: str
    level: str = "info"
    event: str = ""
    message: str = ""
    status: Optional[TaskStatus] = None


@dataclass(frozen=True)
class TaskStatusView:
    """Display projection of a task snapshot."""

    status: TaskStatus
    total_ids: int
    processed_ids: int
    ok_count: int
    skip_count: int
    fail_count: int
    new_files_count: int
    bundle_output_path: str

    @classmethod
    def from_task(cls, task: Optional[Task]) -> Optional["TaskStatusView"]:
        if task is None:
            return None
        return cls(
            status=task.status,
            total_ids=task.total_ids,
            processed_ids=task.processed_ids,
            ok_count=task.ok_count,
            skip_count=task.skip_count,
            fail_count=task.fail_count,
            new_files_count=task.new_files_count,
            bundle_output_path=task.bundle_output_path or "-",
        )
