"""Core data types passed between deployment components."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Set


class StackStatus(str, Enum):
    """Normalised control-plane view of a stack."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"
    ROLLED_BACK = "ROLLED_BACK"
    NOT_FOUND = "NOT_FOUND"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "StackStatus":
        """Map a CloudFormation StackStatus string onto the normalised set."""
        if not raw or raw == "DELETE_COMPLETE":
            return cls.NOT_FOUND
        if raw == "REVIEW_IN_PROGRESS":
            return cls.PENDING
        if raw.endswith("_IN_PROGRESS"):
            return cls.IN_PROGRESS
        if "ROLLBACK_COMPLETE" in raw:
            return cls.ROLLED_BACK
        if raw.endswith("_FAILED"):
            return cls.FAILED
        if raw.endswith("_COMPLETE"):
            return cls.COMPLETE
        return cls.PENDING


@dataclass(frozen=True)
class StackDescriptor:
    """Everything needed to create or update one stack."""
    name: str
    template_source: str
    parameters: Dict[str, str] = field(default_factory=dict)
    capabilities: FrozenSet[str] = frozenset()
    execution_role_ref: Optional[str] = None


@dataclass
class StackState:
    name: str
    status: StackStatus
    raw_status: Optional[str] = None
    outputs: Dict[str, str] = field(default_factory=dict)
    failure_reason: Optional[str] = None

    @classmethod
    def not_found(cls, name: str) -> "StackState":
        return cls(name=name, status=StackStatus.NOT_FOUND)


@dataclass(frozen=True)
class StackEvent:
    resource_status: str
    reason: Optional[str] = None
    logical_id: Optional[str] = None


@dataclass(frozen=True)
class ScopedCredentials:
    """Short-lived credentials for one target's post-provisioning steps."""
    access_key: str
    secret_key: str
    session_token: str
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now >= expires_at

    def __repr__(self) -> str:
        # Secrets must never reach logs or tracebacks
        return (
            f"ScopedCredentials(access_key='{self.access_key[:4]}****', "
            f"expires_at='{self.expires_at.isoformat()}')"
        )

    __str__ = __repr__


@dataclass(frozen=True)
class AssetEntry:
    relative_path: str
    content: bytes
    content_type: str


@dataclass
class ListPage:
    keys: List[str]
    next_token: Optional[str] = None


@dataclass
class SyncReport:
    uploaded: Set[str] = field(default_factory=set)
    deleted: Set[str] = field(default_factory=set)


@dataclass
class InvalidationOutcome:
    distribution_id: str
    invalidation_id: Optional[str]
    completed: bool
    warning: Optional[str] = None
