"""Protection policy and enforcement contract integration."""
from .guard import GuardContract, JsonRpcGuardContract, LockStatus
from .orchestrator import (
    WalletProtectionService, create_protection_system,
    classify_pattern, pattern_severity
)

__all__ = [
    "GuardContract", "JsonRpcGuardContract", "LockStatus",
    "WalletProtectionService", "create_protection_system",
    "classify_pattern", "pattern_severity"
]
