"""Tool call logging.

Every provisioning tool answers with a status line (``OK ...``,
``ERROR <CODE>: ...`` or ``Error: ...``) followed by detail. A call is logged
twice: once when it starts, naming the server and container it acts on, and
once when it ends, with its status line and duration.

    >>> install_container vpn-fra/amnezia-openvpn (password='***')
    <<< install_container vpn-fra/amnezia-openvpn: OK ... [48211.7ms SLOW!]
"""

import logging
import time
from typing import Any

from fastmcp.server.middleware import MiddlewareContext

from outpost_mcp.middleware.base import OutpostMiddleware

# Tool arguments that are never written to logs
SECRET_ARGUMENTS = frozenset({"password", "private_key", "private_key_passphrase", "config"})

# Arguments naming what a call acts on, in display order
TARGET_ARGUMENTS = ("host", "container", "path")

_FAILURE_PREFIXES = ("ERROR", "Error:")


class LoggingMiddleware(OutpostMiddleware):
    """Logs provisioning calls by target, status line and duration.

    Calls that answer with an error status, or take longer than
    ``slow_threshold_ms``, are logged at WARNING.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        include_payloads: bool = False,
        max_payload_length: int = 1000,
        slow_threshold_ms: float = 1000.0,
    ) -> None:
        """Initialize logging middleware.

        Args:
            logger: Optional custom logger.
            include_payloads: Whether to log the full tool output at DEBUG.
            max_payload_length: Maximum output length before truncation.
            slow_threshold_ms: Threshold in ms for slow call warnings.
        """
        super().__init__(logger=logger)
        self.include_payloads = include_payloads
        self.max_payload_length = max_payload_length
        self.slow_threshold_ms = slow_threshold_ms

    @staticmethod
    def _target(args: dict[str, Any] | None) -> str:
        """host/container/path a call acts on, "-" for none."""
        parts = [str(args[key]) for key in TARGET_ARGUMENTS if args and args.get(key)]
        return "/".join(parts) or "-"

    @staticmethod
    def _options(args: dict[str, Any] | None) -> str:
        """Arguments other than the target, secrets masked."""
        shown = []
        for key, value in sorted((args or {}).items()):
            if key in TARGET_ARGUMENTS:
                continue
            if key in SECRET_ARGUMENTS and value:
                shown.append(f"{key}='***'")
            else:
                shown.append(f"{key}={value!r}")
        return f" ({', '.join(shown)})" if shown else ""

    @staticmethod
    def _text(result: Any) -> str:
        """Plain text of a tool result."""
        if result is None:
            return ""
        if isinstance(result, str):
            return result
        content = getattr(result, "content", None)
        if isinstance(content, (list, tuple)):
            return "\n".join(t for t in (getattr(item, "text", None) for item in content) if isinstance(t, str))
        return str(result)

    def _status_line(self, result: Any) -> str:
        """First line of a tool result, or a placeholder."""
        if result is None:
            return "no result"
        text = self._text(result).strip()
        return text.splitlines()[0][:120] if text else "empty result"

    @staticmethod
    def _is_failure(status: str) -> bool:
        return status.startswith(_FAILURE_PREFIXES)

    def _elapsed(self, start: float) -> tuple[float, str]:
        elapsed_ms = (time.perf_counter() - start) * 1000
        label = f"{elapsed_ms:.1f}ms"
        if elapsed_ms >= self.slow_threshold_ms:
            label += " SLOW!"
        return elapsed_ms, label

    async def on_call_tool(
        self,
        context: MiddlewareContext,
        call_next: Any,
    ) -> Any:
        """Log a tool call and its status line."""
        start = time.perf_counter()
        tool_name = getattr(context.message, "name", "unknown")
        args = getattr(context.message, "arguments", None)
        target = self._target(args)

        self.logger.info(">>> %s %s%s", tool_name, target, self._options(args))

        try:
            result = await call_next(context)
        except Exception as e:
            _, elapsed = self._elapsed(start)
            self.logger.error("!!! %s %s raised %s: %s [%s]", tool_name, target, type(e).__name__, e, elapsed)
            raise

        elapsed_ms, elapsed = self._elapsed(start)
        status = self._status_line(result)
        if self._is_failure(status) or elapsed_ms >= self.slow_threshold_ms:
            level = logging.WARNING
        else:
            level = logging.INFO
        self.logger.log(level, "<<< %s %s: %s [%s]", tool_name, target, status, elapsed)

        if self.include_payloads and result is not None:
            output = self._text(result)
            if len(output) > self.max_payload_length:
                output = output[: self.max_payload_length] + "... [truncated]"
            self.logger.debug("    Output: %s", output)
        return result

    async def on_message(
        self,
        context: MiddlewareContext,
        call_next: Any,
    ) -> Any:
        """Log protocol traffic other than tool calls at DEBUG."""
        if context.method == "tools/call":
            return await call_next(context)

        start = time.perf_counter()
        result = await call_next(context)
        self.logger.debug("MCP %s [%s]", context.method, self._elapsed(start)[1])
        return result
