"""
Error taxonomy for event ingestion.

Source-level errors are raised by adapters and absorbed by the orchestrator.
Candidate-level problems are reported as Rejection values, never raised.
Only PersistenceFailure and IngestionConfigError escape an ingestion run.
"""

from dataclasses import dataclass, field
from enum import Enum


class SourceError(Exception):
    """Base class for failures attributable to a single source."""

    kind = "source_error"

    def __init__(self, source_id: str, message: str = ""):
        self.source_id = source_id
        self.message = message or self.kind
        super().__init__(f"[{source_id}] {self.message}")


class SourceUnavailable(SourceError):
    """Transient upstream failure: network, auth, HTTP 5xx, timeout."""

    kind = "source_unavailable"


class SourceMalformed(SourceError):
    """The upstream responded but the body did not have the expected shape."""

    kind = "source_malformed"


class SourceEmpty(SourceError):
    """
    The source produced zero usable candidates.

    Not a failure: the run reports it separately from errors.
    """

    kind = "source_empty"

    def __init__(
        self,
        source_id: str,
        message: str = "",
        skipped_at_source: int = 0,
        sources_consulted: list[str] | None = None,
        warnings: list[str] | None = None,
    ):
        super().__init__(source_id, message or "no candidate events")
        self.skipped_at_source = skipped_at_source
        self.sources_consulted = sources_consulted or []
        self.warnings = warnings or []


class PersistenceFailure(Exception):
    """The final bulk insert failed. Fatal for the run."""

    def __init__(self, message: str, attempted: int = 0):
        self.attempted = attempted
        super().__init__(message)


class IngestionConfigError(ValueError):
    """A hard precondition is missing, e.g. the tenant has no active channels."""


class RejectReason(str, Enum):
    """Why a single candidate was not normalized."""

    UNRESOLVED_CHANNEL = "unresolved_channel"
    UNPARSEABLE_TIME = "unparseable_time"
    MISSING_TITLE = "missing_title"


@dataclass(frozen=True)
class Rejection:
    """A candidate that was skipped during normalization."""

    reason: RejectReason
    detail: str = ""
    title: str = ""


@dataclass
class IngestError:
    """A run-level error entry attributed to one source."""

    source_id: str
    kind: str
    message: str
    details: dict = field(default_factory=dict)

    @classmethod
    def from_exception(cls, source_id: str, exc: BaseException) -> "IngestError":
        if isinstance(exc, SourceError):
            return cls(source_id=source_id, kind=exc.kind, message=exc.message)
        # Unexpected adapter bugs are treated like an unavailable source
        return cls(
            source_id=source_id,
            kind=SourceUnavailable.kind,
            message=f"{type(exc).__name__}: {exc}",
        )
