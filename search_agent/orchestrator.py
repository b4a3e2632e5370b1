"""Core orchestration loop."""

from __future__ import annotations

import functools
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import anyio

from .conversation import DEFAULT_SESSION_ID, ROLE_ASSISTANT, ROLE_USER, ConversationHistory, SessionStore, Turn
from .decision import UseTool, parse
from .dispatcher import ToolCall, ToolDispatcher
from .errors import LoopExceeded, MalformedDecision, ProviderError
from .llm_client import CompletionOptions, ModelProvider
from .tool_registry import SEARCH_TOOL

logger = logging.getLogger("search_agent")


SYSTEM_PROMPT = f"""You are a careful, well-organised assistant. Your goal is to help the user accurately and safely.

- Always reply with a single valid JSON object.
- Do not write anything outside the JSON object: no explanations, no comments, no tags such as <think>.
- If you know the answer for certain, return it directly like this:

{{"action":"finish","answer":"...answer..."}}

- If you are not completely sure, or the question needs up-to-date information, use the {SEARCH_TOOL} tool by replying like this:

{{"action":"use_tool","tool":"{SEARCH_TOOL}","tool_input":{{"query":"...text to search for..."}}}}

- If you used {SEARCH_TOOL}, include the URL of the main source you relied on in your final answer.

Example of a direct answer:

{{"action":"finish","answer":"Pedro Sanchez has been the Prime Minister of Spain since 2018."}}

Example of a search request:

{{"action":"use_tool","tool":"{SEARCH_TOOL}","tool_input":{{"query":"latest Real Madrid result"}}}}"""

INVOCATION_ERROR_MESSAGE = "Error: the language model could not be invoked."
MALFORMED_DECISION_MESSAGE = "Sorry, I could not understand the model's response. Please try again."
LOOP_EXCEEDED_MESSAGE = "Sorry, I could not complete your request within the allowed number of steps."

OUTCOME_FINISHED = "finished"
OUTCOME_PROVIDER_ERROR = "provider_error"
OUTCOME_MALFORMED = "malformed"
OUTCOME_LOOP_EXCEEDED = "loop_exceeded"


class Step(str, Enum):
    CHATBOT = "chatbot"
    TOOLS = "tools"
    END = "end"


@dataclass(frozen=True)
class RuntimeConfig:
    max_loop_iterations: int
    max_history_turns: int = 10
    completion: CompletionOptions = field(default_factory=CompletionOptions)
    model_timeout_s: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_loop_iterations < 1:
            raise ValueError("max_loop_iterations must be at least 1")


@dataclass(frozen=True)
class IntermediateStep:
    tool_used: str
    tool_output: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"tool_used": self.tool_used, "tool_output": self.tool_output}


@dataclass
class AgentState:
    input: str
    intermediate_steps: List[IntermediateStep] = field(default_factory=list)
    tool_call: Optional[ToolCall] = None
    result: Optional[str] = None
    next: Step = Step.CHATBOT
    iterations: int = 0
    outcome: Optional[str] = None
    last_prompt: Optional[str] = None
    events: List[Dict[str, object]] = field(default_factory=list)


@dataclass(frozen=True)
class TurnResult:
    answer: str
    session_id: str
    outcome: str
    iterations: int
    steps: Tuple[IntermediateStep, ...] = ()
    events: Tuple[Dict[str, object], ...] = ()


class Orchestrator:
    def __init__(
        self,
        config: RuntimeConfig,
        llm_client: ModelProvider,
        dispatcher: ToolDispatcher,
        sessions: Optional[SessionStore] = None,
    ) -> None:
        self.config = config
        self.llm_client = llm_client
        self.dispatcher = dispatcher
        self.sessions = sessions if sessions is not None else SessionStore()

    async def run_turn(self, user_input: str, session_id: str = DEFAULT_SESSION_ID) -> TurnResult:
        history = self.sessions.get(session_id)
        state = AgentState(input=user_input)
        while state.next is not Step.END:
            state.next = await self._advance(state, history)
        return TurnResult(
            answer=state.result or "",
            session_id=session_id,
            outcome=state.outcome or OUTCOME_FINISHED,
            iterations=state.iterations,
            steps=tuple(state.intermediate_steps),
            events=tuple(state.events),
        )

    def run_turn_sync(self, user_input: str, session_id: str = DEFAULT_SESSION_ID) -> TurnResult:
        return anyio.run(self.run_turn, user_input, session_id)

    async def _advance(self, state: AgentState, history: ConversationHistory) -> Step:
        if state.next is Step.CHATBOT:
            return await self._chatbot(state, history)
        if state.next is Step.TOOLS:
            return await self._tools(state)
        raise ValueError(f"No transition out of state {state.next!r}")

    async def _chatbot(self, state: AgentState, history: ConversationHistory) -> Step:
        if state.iterations >= self.config.max_loop_iterations:
            exc = LoopExceeded(state.iterations)
            logger.warning(str(exc))
            state.events.append({"type": "error", "kind": OUTCOME_LOOP_EXCEEDED, "error": str(exc)})
            return _finish(state, LOOP_EXCEEDED_MESSAGE, OUTCOME_LOOP_EXCEEDED)
        state.iterations += 1

        prompt = self.build_prompt(state, history)
        state.last_prompt = prompt
        start_time = time.perf_counter()
        try:
            model_text = await self._complete(prompt)
        except TimeoutError:
            logger.error(f"Model call timed out after {self.config.model_timeout_s}s")
            state.events.append({"type": "error", "kind": OUTCOME_PROVIDER_ERROR, "error": "timeout"})
            return _finish(state, INVOCATION_ERROR_MESSAGE, OUTCOME_PROVIDER_ERROR)
        except ProviderError as exc:
            logger.error(f"Model call failed: {exc}")
            state.events.append({"type": "error", "kind": OUTCOME_PROVIDER_ERROR, "error": str(exc)})
            return _finish(state, INVOCATION_ERROR_MESSAGE, OUTCOME_PROVIDER_ERROR)
        except Exception as exc:
            logger.exception("Model provider raised an unexpected error")
            state.events.append({"type": "error", "kind": OUTCOME_PROVIDER_ERROR, "error": repr(exc)})
            return _finish(state, INVOCATION_ERROR_MESSAGE, OUTCOME_PROVIDER_ERROR)
        llm_ms = (time.perf_counter() - start_time) * 1000.0
        logger.debug(f"Raw model output: {model_text}")
        state.events.append({"type": "llm_output", "content": model_text, "duration_ms": llm_ms})

        try:
            decision = parse(model_text)
        except MalformedDecision as exc:
            logger.warning(f"Malformed decision ({exc.reason}); clearing conversation history")
            history.reset()
            state.events.append({"type": "error", "kind": OUTCOME_MALFORMED, "error": exc.reason})
            return _finish(state, MALFORMED_DECISION_MESSAGE, OUTCOME_MALFORMED)

        if isinstance(decision, UseTool):
            logger.debug(f"Model asked for tool {decision.tool}")
            state.tool_call = ToolCall(tool_name=decision.tool, args=decision.input)
            state.events.append({"type": "decision", "action": "use_tool", "tool": decision.tool})
            return Step.TOOLS

        logger.debug("Model answered directly")
        state.events.append({"type": "decision", "action": "finish"})
        history.extend(Turn(ROLE_USER, state.input), Turn(ROLE_ASSISTANT, decision.answer))
        return _finish(state, decision.answer, OUTCOME_FINISHED)

    async def _tools(self, state: AgentState) -> Step:
        call = state.tool_call
        if call is None:
            raise ValueError("Entered tools state without a pending tool call")
        result = await self.dispatcher.dispatch(call)
        state.events.append(
            {
                "type": "tool_call",
                "tool": call.tool_name,
                "args": call.args,
                "duration_ms": result.duration_ms,
            }
        )
        state.events.append(
            {
                "type": "tool_result",
                "tool": call.tool_name,
                "ok": result.ok,
                "payload": result.output,
            }
        )
        state.intermediate_steps.append(IntermediateStep(tool_used=call.tool_name, tool_output=result.output))
        state.tool_call = None
        return Step.CHATBOT

    async def _complete(self, prompt: str) -> str:
        complete = functools.partial(self.llm_client.complete, prompt, self.config.completion)
        if self.config.model_timeout_s:
            with anyio.fail_after(self.config.model_timeout_s):
                return await anyio.to_thread.run_sync(complete, abandon_on_cancel=True)
        return await anyio.to_thread.run_sync(complete)

    def build_prompt(self, state: AgentState, history: ConversationHistory) -> str:
        parts = [SYSTEM_PROMPT]
        context = history.render_context(self.config.max_history_turns)
        if context:
            parts.append(f"Conversation so far:\n{context}")
        parts.append(f"User question: {state.input}")
        if state.intermediate_steps:
            steps = json.dumps(
                [step.to_dict() for step in state.intermediate_steps],
                indent=2,
                ensure_ascii=False,
                default=str,
            )
            parts.append(f"Information obtained from tools:\n{steps}")
        return "\n\n".join(parts)


def _finish(state: AgentState, answer: str, outcome: str) -> Step:
    state.tool_call = None
    state.result = answer
    state.outcome = outcome
    return Step.END
