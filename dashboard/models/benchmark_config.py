"""
Benchmark Configuration Models

Client-side view of the server's benchmark configuration plus the generic
command response envelope.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dashboard.models.metrics import parse_status
from dashboard.models.status import BenchmarkStatus

_CONFIG = ConfigDict(populate_by_name=True, extra="ignore")


class DatabaseSettings(BaseModel):
    """Target database connection."""

    model_config = _CONFIG

    type: str = Field("mysql", description="Database type")
    jdbc_url: str = Field("", alias="jdbcUrl", description="JDBC URL")
    username: str = Field("", description="Database user")
    password: Optional[str] = Field(None, description="Only sent when provided")
    pool_size: Optional[int] = Field(None, alias="poolSize", description="Pool size")


class WorkloadSettings(BaseModel):
    """TPC-C workload sizing."""

    model_config = _CONFIG

    warehouses: int = Field(10, ge=1, description="Number of warehouses")
    terminals: int = Field(50, ge=1, description="Concurrent terminals")
    duration: int = Field(60, ge=1, description="Run duration (seconds)")
    rampup: Optional[int] = Field(None, ge=0, description="Ramp-up (seconds)")
    load_concurrency: int = Field(
        4, ge=1, alias="loadConcurrency", description="Loader threads"
    )
    think_time: bool = Field(False, alias="thinkTime", description="Keying/think time")


class TransactionMix(BaseModel):
    """Percentages per TPC-C transaction type; must total 100."""

    model_config = _CONFIG

    new_order: int = Field(45, ge=0, le=100, alias="newOrder")
    payment: int = Field(43, ge=0, le=100)
    order_status: int = Field(4, ge=0, le=100, alias="orderStatus")
    delivery: int = Field(4, ge=0, le=100)
    stock_level: int = Field(4, ge=0, le=100, alias="stockLevel")

    @property
    def total(self) -> int:
        return (
            self.new_order
            + self.payment
            + self.order_status
            + self.delivery
            + self.stock_level
        )

    @model_validator(mode="after")
    def _check_total(self) -> "TransactionMix":
        if self.total != 100:
            raise ValueError(
                f"Transaction mix must total 100% (currently {self.total}%)"
            )
        return self


class BenchmarkConfig(BaseModel):
    """Full benchmark configuration as exchanged with ``/api/benchmark/config``."""

    model_config = _CONFIG

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    benchmark: WorkloadSettings = Field(default_factory=WorkloadSettings)
    transaction_mix: TransactionMix = Field(
        default_factory=TransactionMix, alias="transactionMix"
    )

    def to_payload(self) -> Dict[str, Any]:
        """Wire form; the password is omitted unless one was entered."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CommandResult(BaseModel):
    """Response envelope of the ``/api/benchmark/*`` mutating endpoints."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    success: bool = False
    message: Optional[str] = None
    error: Optional[str] = None
    status: Optional[BenchmarkStatus] = None
    config: Optional[Dict[str, Any]] = None
    suggestion: Optional[str] = None
    error_type: Optional[str] = Field(None, alias="errorType")
    database: Optional[str] = None
    response_time: Optional[float] = Field(None, alias="responseTime")

    @model_validator(mode="before")
    @classmethod
    def _known_status(cls, data: Any) -> Any:
        if isinstance(data, dict) and "status" in data:
            data = {**data, "status": parse_status(data.get("status"))}
        return data

    @classmethod
    def failure(cls, error: str) -> "CommandResult":
        return cls(success=False, error=error)
