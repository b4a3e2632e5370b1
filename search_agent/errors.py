"""Error types raised inside the agent loop."""

from __future__ import annotations

from typing import Any, Optional


class AgentError(Exception):
    """Base class for every error the agent loop knows how to recover from."""


class ProviderError(AgentError):
    """Raised when the model or search provider fails at the transport or quota level."""

    def __init__(self, provider: str, reason: str, retriable: bool = False) -> None:
        super().__init__(f"{provider} request failed: {reason}")
        self.provider = provider
        self.reason = reason
        self.retriable = retriable


class MalformedDecision(AgentError):
    """Raised when model output cannot be mapped to a valid decision."""

    def __init__(self, reason: str, raw_text: str = "") -> None:
        super().__init__(reason)
        self.reason = reason
        self.raw_text = raw_text


class ToolDispatchError(AgentError):
    """Raised when a tool call names an unknown tool, has bad arguments or fails."""

    def __init__(self, tool: str, reason: str, detail: Optional[Any] = None) -> None:
        super().__init__(f"{tool}: {reason}")
        self.tool = tool
        self.reason = reason
        self.detail = detail

    def to_payload(self) -> dict:
        payload: dict = {"error": self.reason}
        if self.detail is not None:
            payload["detail"] = self.detail
        return payload


class LoopExceeded(AgentError):
    """Raised when a turn runs out of model rounds without a final answer."""

    def __init__(self, iterations: int) -> None:
        super().__init__(f"No final answer after {iterations} model rounds")
        self.iterations = iterations
