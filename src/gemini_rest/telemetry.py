"""Telemetry context and reporter interfaces.

Scopes wrap each remote round-trip (``api.generate``, ``upload.start``,
``auth.mint_token``) and nest into dotted paths. With telemetry disabled the
context is a shared no-op; enable it with ``GEMINI_TELEMETRY=1`` (or
``DEBUG=1``) and at least one reporter, or by passing ``enabled=True``.

    reporter = InMemoryReporter()
    client = GeminiClient(telemetry=TelemetryContext(reporter, enabled=True))
    client.generate("Say hi")
    print(reporter.get_report())
"""

from collections import deque
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
import logging
import os
import time
from typing import Any, Protocol, Self, runtime_checkable

log = logging.getLogger(__name__)

_active_scopes: ContextVar[tuple[str, ...]] = ContextVar("gemini_rest_scopes", default=())

# Read once at import time
_ENV_ENABLED = os.getenv("GEMINI_TELEMETRY") == "1" or os.getenv("DEBUG") == "1"


@runtime_checkable
class TelemetryReporter(Protocol):
    """Anything that accepts scope timings and metrics."""

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None: ...  # noqa: D102
    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None: ...  # noqa: D102


@dataclass(frozen=True, slots=True)
class _NoOpTelemetryContext:
    """Stateless stand-in used whenever telemetry is off."""

    def __call__(self, name: str, **metadata: Any) -> Self:  # noqa: ARG002
        return self

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def metric(self, name: str, value: Any, **metadata: Any) -> None:
        pass

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        pass


def _scope_metadata(parents: tuple[str, ...], extra: dict[str, Any]) -> dict[str, Any]:
    return {
        "depth": len(parents),
        "parent_scope": ".".join(parents) or None,
        **extra,
    }


class _ActiveTelemetryContext:
    """Times scopes and forwards metrics to every reporter."""

    __slots__ = ("reporters",)

    def __init__(self, *reporters: TelemetryReporter):
        self.reporters = reporters

    def __call__(
        self, name: str, **metadata: Any
    ) -> AbstractContextManager["_ActiveTelemetryContext"]:
        return self._scope(name, metadata)

    @contextmanager
    def _scope(
        self, name: str, metadata: dict[str, Any]
    ) -> Iterator["_ActiveTelemetryContext"]:
        if not isinstance(name, str) or not name:
            raise ValueError("Scope name must be a non-empty string")

        parents = _active_scopes.get()
        path = ".".join((*parents, name))
        token = _active_scopes.set((*parents, name))
        started = time.perf_counter()
        try:
            yield self
        finally:
            elapsed = time.perf_counter() - started
            _active_scopes.reset(token)
            details = _scope_metadata(parents, metadata)
            self._emit(lambda r: r.record_timing(path, elapsed, **details))

    def metric(self, name: str, value: Any, **metadata: Any) -> None:
        """Record ``value`` under the current scope path."""
        parents = _active_scopes.get()
        path = ".".join((*parents, name))
        details = _scope_metadata(parents, metadata)
        self._emit(lambda r: r.record_metric(path, value, **details))

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        self.metric(name, increment, metric_type="counter", **metadata)

    def _emit(self, record: Callable[[TelemetryReporter], None]) -> None:
        # A broken reporter is logged and skipped; the request itself proceeds.
        for reporter in self.reporters:
            try:
                record(reporter)
            except Exception as e:
                log.error(
                    "Telemetry reporter '%s' failed: %s",
                    type(reporter).__name__,
                    e,
                    exc_info=True,
                )


_NO_OP = _NoOpTelemetryContext()

type TelemetryContextProtocol = _ActiveTelemetryContext | _NoOpTelemetryContext


def TelemetryContext(  # noqa: N802
    *reporters: TelemetryReporter, enabled: bool | None = None
) -> TelemetryContextProtocol:
    """Return the shared no-op unless telemetry is on and a reporter is given."""
    active = _ENV_ENABLED if enabled is None else enabled
    if active and reporters:
        return _ActiveTelemetryContext(*reporters)
    return _NO_OP


class InMemoryReporter:
    """Keeps the most recent timings and metrics per scope path."""

    def __init__(self, max_entries_per_scope: int = 1000):
        self.max_entries = max_entries_per_scope
        self.timings: dict[str, deque[tuple[float, dict[str, Any]]]] = {}
        self.metrics: dict[str, deque[tuple[Any, dict[str, Any]]]] = {}

    def _bucket(self, store: dict[str, deque[Any]], scope: str) -> deque[Any]:
        return store.setdefault(scope, deque(maxlen=self.max_entries))

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None:
        self._bucket(self.timings, scope).append((duration, metadata))

    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None:
        self._bucket(self.metrics, scope).append((value, metadata))

    def get_report(self) -> str:
        """Plain-text summary: call counts and durations, then metric totals."""
        lines = ["=== Telemetry Report ===", "", "--- Timings ---"]
        for scope, entries in sorted(self.timings.items()):
            durations = [duration for duration, _ in entries]
            lines.append(
                f"{scope:<30} | Calls: {len(durations):<4} | "
                f"Avg: {sum(durations) / len(durations):.4f}s | "
                f"Total: {sum(durations):.4f}s"
            )
        if self.metrics:
            lines += ["", "--- Metrics ---"]
            for scope, entries in sorted(self.metrics.items()):
                total = sum(v for v, _ in entries if isinstance(v, int | float))
                lines.append(f"{scope:<40} | Count: {len(entries):<4} | Total: {total:,.0f}")
        return "\n".join(lines)
