"""Domain types for lending protocol monitoring — on-chain amounts stay as ints."""

from __future__ import annotations

from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

# ── Account health ───────────────────────────────────────────────


class HealthStatus(StrEnum):
    """Classification shared by positions, oracle feeds and reserves."""

    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class AccountPosition(BaseModel):
    """Snapshot of one account as returned by ``getUserAccountData``.

    Collateral, debt and health factor are fixed-point integers scaled by
    10**18.  The health factor is meaningless when ``total_debt`` is zero.
    """

    model_config = ConfigDict(frozen=True)

    address: str
    total_collateral: int
    total_debt: int
    health_factor: int
    available_borrows: int = 0
    liquidation_threshold: int = 0  # basis points
    ltv: int = 0  # basis points

    @property
    def has_debt(self) -> bool:
        return self.total_debt != 0


# ── Market checks ────────────────────────────────────────────────


class OracleFeedStatus(BaseModel):
    """Staleness observation for a single price feed."""

    feed: str
    staleness_secs: float
    max_staleness_secs: float
    price: Decimal | None = None
    status: HealthStatus = HealthStatus.HEALTHY


class UtilizationStatus(BaseModel):
    """Utilization observation for a single reserve."""

    asset: str
    utilization: Decimal
    total_deposits: Decimal = Decimal(0)
    total_borrows: Decimal = Decimal(0)
    status: HealthStatus = HealthStatus.HEALTHY


# ── Logs and events ──────────────────────────────────────────────


class LogRecord(BaseModel):
    """A raw log as delivered by ``eth_getLogs`` / ``eth_subscribe``."""

    topics: list[str] = Field(default_factory=list)
    block_number: int = 0
    tx_hash: str = ""
    address: str = ""


class LendingEventType(StrEnum):
    """Ops-relevant pool events."""

    SUPPLY = "SUPPLY"
    BORROW = "BORROW"
    REPAY = "REPAY"
    LIQUIDATION_CALL = "LIQUIDATION_CALL"
    UNKNOWN = "UNKNOWN"


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    block_number: int
    tx_hash: str


class SupplyEvent(_EventBase):
    event_type: Literal[LendingEventType.SUPPLY] = LendingEventType.SUPPLY
    reserve: str


class BorrowEvent(_EventBase):
    event_type: Literal[LendingEventType.BORROW] = LendingEventType.BORROW
    reserve: str


class RepayEvent(_EventBase):
    event_type: Literal[LendingEventType.REPAY] = LendingEventType.REPAY
    reserve: str


class LiquidationCallEvent(_EventBase):
    event_type: Literal[LendingEventType.LIQUIDATION_CALL] = (
        LendingEventType.LIQUIDATION_CALL
    )
    collateral_asset: str
    debt_asset: str
    user: str


class UnknownEvent(_EventBase):
    event_type: Literal[LendingEventType.UNKNOWN] = LendingEventType.UNKNOWN
    signature: str | None = None


DomainEvent = Annotated[
    SupplyEvent | BorrowEvent | RepayEvent | LiquidationCallEvent | UnknownEvent,
    Field(discriminator="event_type"),
]
