"""Structured logging: a colored console stream plus a JSONL event file.

Search lifecycle events (start, one line per provider, finish) go to both;
plain info/debug messages go to the console only, warnings and errors are
also recorded in the event file.
"""

import contextvars
import json
import logging
import os
import sys
import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from mcpadvisor.core.config import config

_PALETTE = {
    "provider": "\033[38;5;81m",
    "start": "\033[38;5;78m",
    "ok": "\033[38;5;78m",
    "fail": "\033[38;5;203m",
    "time": "\033[38;5;221m",
    "muted": "\033[38;5;245m",
}
_RESET = "\033[0m"
_RULE = "  " + "─" * 42 + "  "
_PASSTHROUGH_KWARGS = ("exc_info", "stack_info", "stacklevel", "extra")

# Start time of the search running in the current task.
_search_clock: contextvars.ContextVar[float | None] = contextvars.ContextVar(
    "search_clock", default=None
)


def _format_elapsed(seconds: float) -> str:
    if seconds <= 0:
        return "0s"
    if seconds < 0.05:
        return "<0.1s"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)}m {rest:.0f}s"


def _one_line(text: str | None, limit: int = 80) -> str:
    flat = " ".join((text or "").split())
    return flat if len(flat) <= limit else flat[:limit] + "..."


def _colors_enabled() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    stream = sys.stderr
    return bool(getattr(stream, "isatty", None) and stream.isatty())


def _paint(role: str, text: str) -> str:
    if not _colors_enabled():
        return text
    return f"{_PALETTE.get(role, '')}{text}{_RESET}"


def _log_kwargs(kwargs: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in kwargs.items() if k in _PASSTHROUGH_KWARGS}


@dataclass
class LogEvent:
    event_type: str
    data: dict[str, Any]
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)


class AdvisorLogger:
    def __init__(self, logs_dir=None):
        logs_dir = logs_dir or config.logs_dir
        logs_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = logs_dir / "advisor.log"
        self._write_lock = threading.Lock()
        self._sink = open(self.log_file, "a", encoding="utf-8")
        self.console = self._build_console()

    @staticmethod
    def _build_console() -> logging.Logger:
        console = logging.getLogger("mcpadvisor")
        console.setLevel(logging.DEBUG)
        if not console.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setLevel(logging.INFO)
            handler.setFormatter(logging.Formatter("%(asctime)s │ %(message)s", datefmt="%H:%M:%S"))
            console.addHandler(handler)
        # One INFO line per HTTP request is noise next to provider summaries.
        logging.getLogger("httpx").setLevel(logging.WARNING)
        return console

    def log_event(self, event: LogEvent) -> None:
        with self._write_lock:
            self._sink.write(event.to_json() + "\n")
            self._sink.flush()

    def search_started(self, task: str, providers: list[str]) -> None:
        _search_clock.set(time.monotonic())
        self.log_event(LogEvent("SEARCH_STARTED", {"task": task[:500], "providers": providers}))
        targets = ", ".join(providers) if providers else "no providers"
        self.console.info(
            "%s  %s  %s",
            _paint("start", "▶ Search"),
            _one_line(task, 100),
            _paint("muted", f"[{targets}]"),
        )

    def provider_result(
        self,
        provider: str,
        result_count: int,
        success: bool,
        *,
        elapsed_ms: float = 0.0,
        error_reason: str | None = None,
    ) -> None:
        data: dict[str, Any] = {
            "provider": provider,
            "success": success,
            "result_count": result_count,
            "elapsed_ms": round(elapsed_ms, 1),
        }
        if error_reason and not success:
            data["error_reason"] = error_reason[:500]
        self.log_event(LogEvent("PROVIDER_RESULT", data))

        status = _paint("ok", "[ok]") if success else _paint("fail", "[failed]")
        if not success and error_reason:
            status = f"{status} {_one_line(error_reason)}"
        self.console.info(
            "  │ %s  %d results  in %s  %s",
            _paint("provider", provider),
            result_count,
            _paint("time", _format_elapsed(elapsed_ms / 1000.0)),
            status,
        )

    def search_finished(self, result_count: int, error_count: int = 0) -> None:
        started = _search_clock.get()
        _search_clock.set(None)
        elapsed = time.monotonic() - started if started is not None else 0.0
        self.log_event(
            LogEvent(
                "SEARCH_FINISHED",
                {
                    "result_count": result_count,
                    "error_count": error_count,
                    "duration_seconds": round(elapsed, 3),
                },
            )
        )
        summary = f"{_paint('ok', '✓ Done')}  {result_count} results  total {_paint('time', _format_elapsed(elapsed))}"
        if error_count:
            summary += f"  {error_count} provider errors"
        self.console.info(summary)
        self.console.info(_RULE)

    def error(self, message: str, *args, exception: Exception | None = None, **kwargs):
        self.log_event(
            LogEvent("ERROR", {"message": message, "exception": repr(exception) if exception else None})
        )
        log_kwargs = _log_kwargs(kwargs)
        if exception is not None:
            log_kwargs.setdefault("exc_info", exception)
        self.console.error(f"❌ {message}", *args, **log_kwargs)

    def warning(self, message: str, *args, **kwargs):
        self.log_event(LogEvent("WARNING", {"message": message[:500]}))
        self.console.warning(f"⚠️ {message}", *args, **_log_kwargs(kwargs))

    def info(self, message: str, *args, **kwargs):
        self.console.info(message, *args, **_log_kwargs(kwargs))

    def debug(self, message: str, *args, **kwargs):
        self.console.debug(message, *args, **_log_kwargs(kwargs))


logger = AdvisorLogger()
