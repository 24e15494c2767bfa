"""Core data models for state compliance monitoring and drift reconciliation."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


def generate_id() -> str:
    """Return a new random entity id."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC)


class LogKind(StrEnum):
    """Kind of validation log entry."""

    MANUAL_VALIDATION = "validation"
    STATE_CHECK = "tfstate"


class CheckStatus(StrEnum):
    """Outcome of one reconciliation pass over a tracked state."""

    SKIPPED = "SKIPPED"
    UNCHANGED = "UNCHANGED"
    CHANGED = "CHANGED"
    TOOLING_FAILED = "TOOLING_FAILED"
    FETCH_FAILED = "FETCH_FAILED"
    PERSIST_FAILED = "PERSIST_FAILED"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


@dataclass(frozen=True)
class ComplianceResult:
    """Structured outcome of one compliance run.

    ``error`` is set only on the "check failed" variant recorded when the
    tooling could not produce a result; both maps are empty in that case.
    Equality is structural over the maps and the error text.
    """

    feature_passed: dict[str, bool] = field(default_factory=dict)
    fail_messages: dict[str, list[str]] = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def failed(cls, message: str) -> "ComplianceResult":
        return cls(error=message)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def test_count(self) -> int:
        return len(self.feature_passed)

    @property
    def error_count(self) -> int:
        return sum(1 for passed in self.feature_passed.values() if not passed)

    @property
    def passed_count(self) -> int:
        return self.test_count - self.error_count

    def to_dict(self) -> dict:
        data: dict = {
            "feature_passed": dict(self.feature_passed),
            "fail_messages": {k: list(v) for k, v in self.fail_messages.items()},
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ComplianceResult":
        return cls(
            feature_passed={k: bool(v) for k, v in data.get("feature_passed", {}).items()},
            fail_messages={k: list(v) for k, v in data.get("fail_messages", {}).items()},
            error=data.get("error"),
        )


@dataclass(frozen=True)
class StateLocation:
    """Where a state blob lives in the object store."""

    bucket: str
    key: str

    def __str__(self) -> str:
        return f"{self.bucket}:{self.key}"


@dataclass
class TrackedState:
    """A remote infrastructure-state blob under periodic surveillance."""

    id: str
    account: str
    bucket: str
    path: str
    tags: list[str] = field(default_factory=list)
    last_known_content_json: str = ""
    last_compliance_result: ComplianceResult | None = None
    last_modification_token: str = ""
    last_checked_at: datetime | None = None
    force_recheck: bool = False

    @classmethod
    def new(cls, account: str, bucket: str, path: str, tags: list[str] | None = None):
        return cls(id=generate_id(), account=account, bucket=bucket, path=path, tags=tags or [])

    @property
    def location(self) -> StateLocation:
        return StateLocation(bucket=self.bucket, key=self.path)

    @property
    def never_checked(self) -> bool:
        return self.last_checked_at is None


@dataclass
class ForeignResource:
    """A cloud resource observed to exist outside every tracked state."""

    id: str
    resource_type: str
    resource_id: str
    resource_details: str
    discovered_at: datetime
    is_exception: bool = False

    @classmethod
    def new(cls, resource_type: str, resource_id: str, resource_details: str):
        return cls(
            id=generate_id(),
            resource_type=resource_type,
            resource_id=resource_id,
            resource_details=resource_details,
            discovered_at=utcnow(),
        )


@dataclass(frozen=True)
class ValidationLogEntry:
    """Immutable audit record of one executed compliance check."""

    id: str
    kind: LogKind
    created_at: datetime
    current_state_json: str
    current_result: ComplianceResult
    previous_state_json: str = ""
    previous_result: ComplianceResult | None = None
    location_details: str = ""

    @classmethod
    def manual(cls, state_json: str, result: ComplianceResult) -> "ValidationLogEntry":
        return cls(
            id=generate_id(),
            kind=LogKind.MANUAL_VALIDATION,
            created_at=utcnow(),
            current_state_json=state_json,
            current_result=result,
        )

    @classmethod
    def state_check(
        cls,
        state_json: str,
        result: ComplianceResult,
        previous_state_json: str,
        previous_result: ComplianceResult | None,
        location: StateLocation,
    ) -> "ValidationLogEntry":
        return cls(
            id=generate_id(),
            kind=LogKind.STATE_CHECK,
            created_at=utcnow(),
            current_state_json=state_json,
            current_result=result,
            previous_state_json=previous_state_json,
            previous_result=previous_result,
            location_details=str(location),
        )


@dataclass(frozen=True)
class ComplianceFeature:
    """A named policy check in the checker's language, selected by tags."""

    name: str
    source: str
    tags: list[str] = field(default_factory=list)
    disabled: bool = False


@dataclass(frozen=True)
class DiscoveredResource:
    """A cloud resource returned by a registry lister."""

    resource_type: str
    resource_id: str
    details: str = ""


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a conditional fetch."""

    changed: bool
    token: str
    content: bytes | None = None


@dataclass(frozen=True)
class CheckOutcome:
    """What a reconciliation pass did to one tracked state."""

    state_id: str
    status: CheckStatus
    log_entry: ValidationLogEntry | None = None
    error: str | None = None


@dataclass(frozen=True)
class SweepResult:
    """Aggregate of one reconciliation tick."""

    full_sweep: bool
    outcomes: list[CheckOutcome]

    @property
    def failed_states(self) -> list[str]:
        return [
            o.state_id
            for o in self.outcomes
            if o.status
            in (
                CheckStatus.TOOLING_FAILED,
                CheckStatus.FETCH_FAILED,
                CheckStatus.PERSIST_FAILED,
                CheckStatus.UNEXPECTED_ERROR,
            )
        ]


@dataclass(frozen=True)
class AdoptedResource:
    """A foreign resource found inside a tracked state and removed from the registry."""

    foreign_resource: ForeignResource
    state: TrackedState


@dataclass(frozen=True)
class DriftReport:
    """Changes made to the foreign-resource registry by one drift pass."""

    created: list[ForeignResource]
    adopted: list[AdoptedResource]
    failed: list[str]
