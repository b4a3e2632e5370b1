"""Tool dispatch: maps a tool call to its execution and never raises."""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import anyio

from .errors import ProviderError, ToolDispatchError
from .tool_registry import ALLOWED_TOOLS, SEARCH_TOOL, validate_toolcall

logger = logging.getLogger("search_agent")


@dataclass(frozen=True)
class ToolCall:
    tool_name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    tool: str
    ok: bool
    output: Any
    duration_ms: float = 0.0


class SearchProvider(Protocol):
    def search(self, query: str, **options: Any) -> Any:
        ...


class ToolDispatcher:
    def __init__(self, search_provider: Optional[SearchProvider], timeout_s: Optional[float] = None):
        self.search_provider = search_provider
        self.timeout_s = timeout_s

    async def dispatch(self, call: ToolCall) -> ToolResult:
        start_time = time.perf_counter()
        try:
            output = await self._execute(call)
        except ToolDispatchError as exc:
            logger.warning(f"Tool call {call.tool_name} failed: {exc.reason}")
            return ToolResult(
                call.tool_name,
                False,
                exc.to_payload(),
                (time.perf_counter() - start_time) * 1000.0,
            )
        duration_ms = (time.perf_counter() - start_time) * 1000.0
        logger.info(f"Tool call {call.tool_name} finished in {duration_ms:.0f} ms")
        return ToolResult(call.tool_name, True, output, duration_ms)

    async def _execute(self, call: ToolCall) -> Any:
        if call.tool_name not in ALLOWED_TOOLS:
            raise ToolDispatchError(
                call.tool_name,
                "tool not recognized",
                {"available_tools": sorted(ALLOWED_TOOLS)},
            )
        validation = validate_toolcall(call.tool_name, call.args)
        if not validation.ok:
            raise ToolDispatchError(call.tool_name, "invalid arguments", validation.error)
        if call.tool_name == SEARCH_TOOL:
            return await self._run_search(call.args)
        raise ToolDispatchError(call.tool_name, "tool not recognized")

    async def _run_search(self, args: Dict[str, Any]) -> Any:
        if self.search_provider is None:
            raise ToolDispatchError(SEARCH_TOOL, "search provider not configured")
        options = {key: value for key, value in args.items() if key != "query"}
        search = functools.partial(self.search_provider.search, args["query"], **options)
        try:
            if self.timeout_s:
                with anyio.fail_after(self.timeout_s):
                    return await anyio.to_thread.run_sync(search, abandon_on_cancel=True)
            return await anyio.to_thread.run_sync(search)
        except TimeoutError:
            raise ToolDispatchError(SEARCH_TOOL, "search timed out", f"no response after {self.timeout_s}s")
        except ProviderError as exc:
            raise ToolDispatchError(SEARCH_TOOL, "search failed", exc.reason) from exc
        except Exception as exc:
            logger.exception("Search provider raised an unexpected error")
            raise ToolDispatchError(SEARCH_TOOL, "search failed", str(exc)) from exc
