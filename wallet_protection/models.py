"""Domain models for Wallet Protection Monitor."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Timezone-aware current UTC time; the default clock everywhere."""
    return datetime.now(timezone.utc)


def normalize_address(address: str) -> str:
    return address.strip().lower()


class TransactionKind(str, Enum):
    """Kind of observed ledger event."""
    TRANSFER = "transfer"
    APPROVAL = "approval"


class LabelType(str, Enum):
    """Suspicious behaviour classes."""
    HIGH_FREQUENCY = "high_frequency"
    LARGE_TRANSACTION = "large_transaction"
    NEW_RECIPIENT = "new_recipient"
    DRAIN_PATTERN = "drain_pattern"
    UNLIMITED_APPROVAL = "unlimited_approval"
    BLACKLIST_INTERACTION = "blacklist_interaction"


class Severity(str, Enum):
    """Severity attached to a suspicion label."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertLevel(str, Enum):
    """Alert severity levels."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AlertType(str, Enum):
    """What raised an alert."""
    RISK_SCORE = "risk_score"
    MANUAL_LOCK = "manual_lock"
    JUDICIAL_FREEZE = "judicial_freeze"
    BLACKLIST = "blacklist"
    SYSTEM = "system"


@dataclass(frozen=True)
class BlockMeta:
    """Chain position of a delivered event."""
    block_number: int = 0
    tx_hash: str = ""


@dataclass(frozen=True)
class TransactionRecord:
    """One observed ledger event. Addresses are lowercase."""
    kind: TransactionKind
    from_address: str
    to_address: str
    amount: int
    timestamp: datetime  # ingest time, not chain time
    block_number: int = 0
    tx_hash: str = ""

    def to_dict(self) -> dict:
        return {
            "type": self.kind.value,
            "from": self.from_address,
            "to": self.to_address,
            "amount": str(self.amount),
            "timestamp": self.timestamp.isoformat(),
            "block_number": self.block_number,
            "tx_hash": self.tx_hash,
        }


@dataclass(frozen=True)
class SuspicionLabel:
    """Typed, severity-tagged classification of one observed event."""
    type: LabelType
    severity: Severity
    description: str = ""


@dataclass
class RiskProfile:
    """Per-account scoring state."""
    address: str
    current_score: int = 0
    highest_score: int = 0
    last_updated: Optional[datetime] = None
    flag_count: int = 0
    recent_labels: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "wallet": self.address,
            "current_score": self.current_score,
            "highest_score": self.highest_score,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "flag_count": self.flag_count,
            "recent_patterns": list(self.recent_labels),
        }


@dataclass
class AlertRecord:
    """Operator-facing notification."""
    id: str
    level: AlertLevel
    type: AlertType
    wallet: str
    message: str
    timestamp: datetime
    details: dict[str, Any] = field(default_factory=dict)
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "level": self.level.value,
            "type": self.type.value,
            "wallet": self.wallet,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "acknowledged": self.acknowledged,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
        }
