"""Error reporting and progress collaborators used during an export run."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_MAX_CONTEXT_CHARS = 500


class ProgressReporter(Protocol):
    """Receives progress signals for the host UI."""

    def items_discovered(self, count: int) -> None: ...

    def phase_updated(self, phase: str, count: int) -> None: ...

    def page_fetched(self) -> None: ...

    def done(self) -> None: ...


@dataclass(slots=True)
class ProgressTracker:
    """In-memory progress counters that satisfy :class:`ProgressReporter`."""

    overall: int = 0
    pages: int = 0
    phases: dict[str, int] = field(default_factory=dict)
    finished: bool = False
    history: list[tuple[str, int]] = field(default_factory=list)

    def items_discovered(self, count: int) -> None:
        self.overall = count
        self.history.append(("overall", count))

    def phase_updated(self, phase: str, count: int) -> None:
        self.phases[phase] = count
        self.history.append((phase, count))

    def page_fetched(self) -> None:
        self.pages += 1

    def done(self) -> None:
        self.finished = True

    def counts_for(self, phase: str) -> list[int]:
        """Return every count reported for ``phase`` in order."""

        return [count for name, count in self.history if name == phase]

    def snapshot(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "pages": self.pages,
            "phases": dict(self.phases),
            "done": self.finished,
        }


class ErrorReporter:
    """Sends every encountered error to the log with diagnostic context."""

    def __init__(
        self,
        *,
        customer_name: str | None = None,
        customer_email: str | None = None,
        anonymous_id: str | None = None,
    ) -> None:
        self._identity = {
            "customer_name": customer_name or "",
            "customer_email": customer_email or "unknown",
            "anonymous_id": anonymous_id or "",
        }
        self.reported: list[tuple[BaseException, dict[str, Any]]] = []

    @property
    def count(self) -> int:
        return len(self.reported)

    def report(self, error: BaseException, **context: Any) -> None:
        """Record ``error`` together with the phase, attempt and query involved."""

        details = {key: _truncate(value) for key, value in context.items()}
        extra_details = getattr(error, "details", None)
        if extra_details:
            details["details"] = _truncate(extra_details)
        self.reported.append((error, details))
        logger.error(
            "%s: %s",
            error.__class__.__name__,
            error,
            extra={"error_context": details, "requester": self._identity},
        )
        if details:
            logger.debug("Error context: %s", details)


def _truncate(value: Any) -> Any:
    if isinstance(value, str) and len(value) > _MAX_CONTEXT_CHARS:
        return value[:_MAX_CONTEXT_CHARS] + "..."
    if isinstance(value, dict):
        return {key: _truncate(item) for key, item in value.items()}
    return value
