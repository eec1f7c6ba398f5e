"""
Capture structlog events for a single acquisition into a caller-owned sink.

The caller creates a DiagnosticSink and passes it into the fetch call; the
fetcher wraps its logger with sink.bind(), and every event emitted through the
wrapper is recorded in the sink before it is forwarded to structlog. Capture
does not depend on how structlog is configured, and nothing global is
swapped, so concurrent requests each see only their own records.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import structlog

_SKIP_KEYS = frozenset({"event", "level", "timestamp", "_record"})


def _format_value(v: Any, max_len: int = 120) -> str:
    s = str(v)
    return s if len(s) <= max_len else s[: max_len - 3] + "…"


class DiagnosticSink:
    """Per-request accumulator of structured log records."""

    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self.records)

    def bind(self, logger: Any) -> CapturingLogger:
        """Wrap logger so every event it emits is also recorded here."""
        return CapturingLogger(logger, self)

    def append(self, level: str, event_dict: dict[str, Any]) -> None:
        record = {k: v for k, v in event_dict.items() if k not in _SKIP_KEYS}
        record["event"] = event_dict.get("event", "")
        record["level"] = (event_dict.get("level") or level or "info").lower()
        record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        self.records.append(record)

    def events(self) -> list[str]:
        return [r["event"] for r in self.records]

    def lines(self) -> list[str]:
        """One plain-text line per record, terminal style."""
        out: list[str] = []
        for record in self.records:
            level = record["level"]
            if level == "warning":
                prefix = "⚠"
            elif level in ("error", "critical"):
                prefix = "✗"
            elif level == "debug":
                prefix = "·"
            else:
                prefix = "▪"
            kv_str = "  ".join(
                f"{k}={_format_value(v)}"
                for k, v in sorted(record.items())
                if k not in ("event", "level", "timestamp")
            )
            out.append(f"{prefix} {record['event']}  {kv_str}".strip())
        return out



class CapturingLogger:
    """
    Proxy over a structlog logger that records each event into a sink first.

    Events are recorded whatever the configured level, so a debug run of the
    HTTP boundary sees the full attempt history. bind() keeps the wrapping.
    """

    def __init__(self, logger: Any, sink: DiagnosticSink, context: Optional[dict[str, Any]] = None) -> None:
        self._logger = logger
        self._sink = sink
        self._context = dict(structlog.get_context(logger)) if context is None else context

    def bind(self, **new_values: Any) -> CapturingLogger:
        return CapturingLogger(
            self._logger.bind(**new_values),
            self._sink,
            {**self._context, **new_values},
        )

    def _emit(self, method: str, level: str, event: str, kw: dict[str, Any]) -> Any:
        self._sink.append(level, {**self._context, **kw, "event": event, "level": level})
        return getattr(self._logger, method)(event, **kw)

    def debug(self, event: str, **kw: Any) -> Any:
        return self._emit("debug", "debug", event, kw)

    def info(self, event: str, **kw: Any) -> Any:
        return self._emit("info", "info", event, kw)

    def warning(self, event: str, **kw: Any) -> Any:
        return self._emit("warning", "warning", event, kw)

    def error(self, event: str, **kw: Any) -> Any:
        return self._emit("error", "error", event, kw)

    def exception(self, event: str, **kw: Any) -> Any:
        return self._emit("exception", "error", event, kw)

    def critical(self, event: str, **kw: Any) -> Any:
        return self._emit("critical", "critical", event, kw)
