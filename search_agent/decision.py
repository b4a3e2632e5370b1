"""Decision parsing for raw model output."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from .errors import MalformedDecision


ACTION_FINISH = "finish"
ACTION_USE_TOOL = "use_tool"


@dataclass(frozen=True)
class Finish:
    answer: str


@dataclass(frozen=True)
class UseTool:
    tool: str
    input: Dict[str, Any] = field(default_factory=dict)


Decision = Union[Finish, UseTool]


def parse(raw_text: str) -> Decision:
    """Map model output to a Decision, tolerating prose around the JSON payload.

    The whole text is tried first. If that fails, the first balanced
    ``{...}`` block is extracted and parsed instead. Anything that cannot be
    recovered raises :class:`MalformedDecision`.
    """
    text = raw_text or ""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        block = extract_json_block(text)
        if block is None:
            raise MalformedDecision("no structured block present", raw_text=text)
        try:
            payload = json.loads(block)
        except json.JSONDecodeError:
            raise MalformedDecision("invalid content inside detected block", raw_text=text)
    return _to_decision(payload, text)


def extract_json_block(text: str) -> Optional[str]:
    """Return the first balanced brace-delimited block in ``text``, or None.

    Braces inside JSON string literals do not count towards the depth.
    """
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def _to_decision(payload: Any, raw_text: str) -> Decision:
    action = payload.get("action") if isinstance(payload, dict) else None
    if action == ACTION_FINISH:
        answer = payload.get("answer")
        if not isinstance(answer, str):
            raise MalformedDecision("finish decision without a string 'answer'", raw_text=raw_text)
        return Finish(answer=answer)
    if action == ACTION_USE_TOOL:
        tool = payload.get("tool")
        tool_input = payload.get("tool_input", {})
        if not isinstance(tool, str) or not tool:
            raise MalformedDecision("use_tool decision without a 'tool' name", raw_text=raw_text)
        if tool_input is None:
            tool_input = {}
        if not isinstance(tool_input, dict):
            raise MalformedDecision("'tool_input' must be an object", raw_text=raw_text)
        return UseTool(tool=tool, input=dict(tool_input))
    raise MalformedDecision("unrecognized or missing action", raw_text=raw_text)
