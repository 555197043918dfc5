"""
sap_calm.core.trace - Debug trace sink
======================================

Structured trace events (tool calls, HTTP requests/responses, token
refreshes) routed through the ``sap_calm.trace`` logger. When debug mode
is enabled a timestamped trace file under the temp directory is attached.

Emitting an event never raises: a broken sink must not change the outcome
of a tool call.
"""

from __future__ import annotations

import json
import logging
import tempfile
import time
from pathlib import Path
from typing import Any, Optional


def truncate_json(value: Any, max_len: int) -> str:
    """Serialize ``value`` as compact JSON, cut to ``max_len`` characters."""
    if isinstance(value, (bytes, bytearray)):
        s = value.decode("utf-8", errors="replace")
    elif isinstance(value, str):
        s = value
    else:
        try:
            s = json.dumps(value, default=str, separators=(",", ":"))
        except (TypeError, ValueError):
            s = repr(value)
    if len(s) <= max_len:
        return s
    return f"{s[:max_len]}...(truncated)"


class TraceSink:
    """
    Debug event sink.

    Parameters
    ----------
    enabled : bool
        If False every emit call is a no-op
    trace_dir : str or Path, optional
        Directory for the trace file (default: system temp dir)
    logger : logging.Logger, optional
        Logger to emit on (default: ``sap_calm.trace``)
    """

    def __init__(
        self,
        enabled: bool = False,
        *,
        trace_dir: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.enabled = enabled
        self.logger = logger or logging.getLogger("sap_calm.trace")
        self.trace_path: Optional[Path] = None
        self._handler: Optional[logging.Handler] = None

        if enabled:
            self._open_file(Path(trace_dir) if trace_dir else Path(tempfile.gettempdir()))

    def _open_file(self, directory: Path) -> None:
        stamp = time.strftime("%Y%m%d_%H%M%S")
        path = directory / f"sap_calm_trace_{stamp}.log"
        try:
            handler = logging.FileHandler(path, mode="w", encoding="utf-8")
        except OSError as e:
            self.logger.warning("Failed to create trace file %s: %s", path, e)
            return
        handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s"))
        handler.setLevel(logging.DEBUG)
        self.logger.addHandler(handler)
        self.logger.setLevel(logging.DEBUG)
        self._handler = handler
        self.trace_path = path
        self.logger.info("Trace file: %s", path)

    def close(self) -> None:
        if self._handler is not None:
            self.logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None

    # ---------------- events ----------------

    def emit(self, event: str, message: str, *args: Any) -> None:
        if not self.enabled:
            return
        try:
            self.logger.debug("%s | " + message, event.upper(), *args)
        except Exception:  # noqa: BLE001
            pass

    def tool_call(self, name: str, arguments: Any, correlation_id: str = "") -> None:
        if self.enabled:
            self.emit("tool call", "%s [%s] params: %s", name, correlation_id, truncate_json(arguments, 1000))

    def tool_result(self, name: str, result: Any, correlation_id: str = "") -> None:
        if self.enabled:
            self.emit("tool result", "%s [%s] result: %s", name, correlation_id, truncate_json(result, 1000))

    def request_sent(self, method: str, url: str, body: Any = None, correlation_id: str = "") -> None:
        if self.enabled:
            shown = truncate_json(body, 500) if body is not None else "(no body)"
            self.emit("request sent", "%s %s [%s] body: %s", method, url, correlation_id, shown)

    def response_received(self, status: int, url: str, body: bytes = b"", correlation_id: str = "") -> None:
        if self.enabled:
            shown = truncate_json(body, 500) if body else "(no body)"
            self.emit("response received", "%s %s [%s] body: %s", status, url, correlation_id, shown)

    def auth_refreshed(self, expires_at: float) -> None:
        if self.enabled:
            try:
                stamp = time.strftime("%Y-%m-%d %H:%M:%S UTC", time.gmtime(expires_at))
            except (OverflowError, OSError, ValueError):
                stamp = str(expires_at)
            self.emit("auth refreshed", "token acquired, expires at %s", stamp)

    def error(self, context: str, error: Any) -> None:
        if self.enabled:
            self.emit("error", "[%s] %s", context, error)


NULL_TRACE = TraceSink(enabled=False)
