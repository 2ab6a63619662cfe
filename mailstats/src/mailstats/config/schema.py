"""Pydantic models describing mailstats configuration and status documents."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as _PydanticValidationError
from pydantic import field_validator

DEFAULT_QUERY = "-in:sent in:inbox"
DEFAULT_METADATA_HEADERS = ["Delivered-To", "To", "From", "Subject"]


class ValidationError(ValueError):
    """Raised when configuration data does not satisfy the schema."""


class PathsConfig(BaseModel):
    """Filesystem layout used by the runtime."""

    model_config = ConfigDict(extra="forbid")

    state_dir: str = "."


class GmailSettings(BaseModel):
    """Mailbox addressing and requested headers."""

    model_config = ConfigDict(extra="forbid")

    user_id: str = "me"
    metadata_headers: List[str] = Field(default_factory=lambda: list(DEFAULT_METADATA_HEADERS))

    @field_validator("metadata_headers")
    @classmethod
    def _require_address_headers(cls, value: List[str]) -> List[str]:
        lowered = {header.lower() for header in value}
        if "from" not in lowered or not lowered.intersection({"to", "delivered-to"}):
            raise ValueError("metadata_headers must include From and To or Delivered-To")
        return value


class FetchSettings(BaseModel):
    """Paging, backoff and pacing parameters for the fetch pipeline."""

    model_config = ConfigDict(extra="forbid")

    page_size: int = Field(default=500, ge=1, le=500)
    query: str = DEFAULT_QUERY
    max_retries: int = Field(default=5, ge=0)
    backoff_base: float = Field(default=2.0, ge=1.0)
    jitter_s: float = Field(default=1.0, ge=0.0)
    inter_page_delay_s: float = Field(default=30.0, ge=0.0)


class StoreSettings(BaseModel):
    """Location and encryption of the message database."""

    model_config = ConfigDict(extra="forbid")

    path: str = "messages.db"
    encryption_key_path: Optional[str] = None
    pragmas: Dict[str, str] = Field(default_factory=dict)


class StatusSettings(BaseModel):
    """Location and history bound of the sync status snapshot."""

    model_config = ConfigDict(extra="forbid")

    path: str = "status.yaml"
    max_events: int = Field(default=50, gt=0)


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``config.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = 1
    paths: PathsConfig = Field(default_factory=PathsConfig)
    gmail: GmailSettings = Field(default_factory=GmailSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    status: StatusSettings = Field(default_factory=StatusSettings)


class StatusEvent(BaseModel):
    """One status line shown to the user during a sync."""

    model_config = ConfigDict(extra="forbid")

    ts: str
    text: str


class LastRun(BaseModel):
    """Outcome of the most recent finished sync."""

    model_config = ConfigDict(extra="forbid")

    run_id: str
    finished_at: str
    phase: Literal["completed", "error", "cancelled", "fetching", "rate_limited", "storing"]
    pages: int = Field(default=0, ge=0)
    stored: int = Field(default=0, ge=0)
    dropped: int = Field(default=0, ge=0)
    error_kind: Optional[Literal["rate_limit", "provider", "malformed", "storage"]] = None
    message: str = ""


class SyncStatus(BaseModel):
    """Status snapshot persisted between syncs."""

    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = 1
    current: Optional[str] = None
    updated_at: Optional[str] = None
    last_run: Optional[LastRun] = None
    events: List[StatusEvent] = Field(default_factory=list)

    @classmethod
    def minimal(cls) -> "SyncStatus":
        return cls()

    @classmethod
    def model_validate(cls, data: Dict[str, Any]) -> "SyncStatus":  # type: ignore[override]
        try:
            return super().model_validate(data)
        except _PydanticValidationError as exc:
            raise ValidationError(str(exc)) from exc
