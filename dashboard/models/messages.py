"""
Push Channel Messages

Every frame on the push channel is one of four kinds. ``log``, ``progress``
and ``status`` frames carry an explicit ``type`` tag; anything else is a
metrics snapshot. The tag is normalized here so the rest of the console can
dispatch on a closed union.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from dashboard.errors import MalformedMessageError
from dashboard.models.logs import LogEntry
from dashboard.models.metrics import MetricSnapshot, parse_status
from dashboard.models.status import BenchmarkStatus

_MESSAGE_CONFIG = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

TAGGED_KINDS = ("log", "progress", "status")


class LogMessage(BaseModel):
    """A backend log line."""

    model_config = _MESSAGE_CONFIG

    type: Literal["log"] = "log"
    log: LogEntry


class ProgressMessage(BaseModel):
    """Data-load progress, optionally with the current status."""

    model_config = _MESSAGE_CONFIG

    type: Literal["progress"] = "progress"
    progress: float = 0.0
    message: str = ""
    status: Optional[BenchmarkStatus] = None

    @field_validator("status", mode="before")
    @classmethod
    def _known_status(cls, value: Any) -> Any:
        return parse_status(value)

    @field_validator("message", mode="before")
    @classmethod
    def _message_text(cls, value: Any) -> Any:
        return "" if value is None else value


class StatusMessage(BaseModel):
    """Status change notification."""

    model_config = _MESSAGE_CONFIG

    type: Literal["status"] = "status"
    status: BenchmarkStatus
    loading: Optional[bool] = None
    running: Optional[bool] = None


class MetricsMessage(BaseModel):
    """Anything untagged: a full metrics snapshot."""

    model_config = _MESSAGE_CONFIG

    type: Literal["metrics"] = "metrics"
    snapshot: MetricSnapshot


TelemetryMessage = Annotated[
    Union[LogMessage, ProgressMessage, StatusMessage, MetricsMessage],
    Field(discriminator="type"),
]

_message_adapter: TypeAdapter[Any] = TypeAdapter(TelemetryMessage)


def parse_message(raw: Any) -> LogMessage | ProgressMessage | StatusMessage | MetricsMessage:
    """
    Parse a raw push frame (JSON text, bytes or an already-decoded dict).

    Raises:
        MalformedMessageError: the frame is not a JSON object or misses
            fields its kind requires.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedMessageError(f"frame is not UTF-8: {e}") from e
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedMessageError(f"frame is not JSON: {e}") from e
    if not isinstance(raw, dict):
        raise MalformedMessageError(f"frame is not an object: {type(raw).__name__}")

    kind = raw.get("type")
    if kind in TAGGED_KINDS:
        payload: dict[str, Any] = raw
    else:
        payload = {"type": "metrics", "snapshot": raw}

    try:
        return _message_adapter.validate_python(payload)
    except ValidationError as e:
        raise MalformedMessageError(
            f"invalid {payload['type']} frame: {e.error_count()} error(s)"
        ) from e
