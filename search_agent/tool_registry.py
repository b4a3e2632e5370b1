"""Tool allowlist and argument validation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional


SEARCH_TOOL = "tavily_search"

ALLOWED_TOOLS = {SEARCH_TOOL}

SEARCH_KEYS = {"query", "max_results", "topic"}

SEARCH_TOPICS = {"general", "news"}

MAX_SEARCH_RESULTS = 20


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    error: Optional[str] = None


def _expect_type(name: str, value: Any, expected: Iterable[type]) -> Optional[str]:
    expected = tuple(expected)
    # bool is an int subclass; never accept it where a number is wanted
    if isinstance(value, bool) and bool not in expected:
        return f"'{name}' must be {', '.join(t.__name__ for t in expected)}"
    if not isinstance(value, expected):
        return f"'{name}' must be {', '.join(t.__name__ for t in expected)}"
    return None


def validate_toolcall(tool: str, args: Dict[str, Any]) -> ValidationResult:
    if tool not in ALLOWED_TOOLS:
        return ValidationResult(False, f"Tool '{tool}' is not allowed")

    if tool == SEARCH_TOOL:
        unknown = set(args.keys()) - SEARCH_KEYS
        if unknown:
            return ValidationResult(False, f"Unknown keys for {SEARCH_TOOL}: {sorted(unknown)}")
        if "query" not in args:
            return ValidationResult(False, f"{SEARCH_TOOL} requires 'query'")
        err = _expect_type("query", args["query"], [str])
        if err:
            return ValidationResult(False, err)
        if not args["query"].strip():
            return ValidationResult(False, "'query' must not be empty")
        if "max_results" in args:
            err = _expect_type("max_results", args["max_results"], [int])
            if err:
                return ValidationResult(False, err)
            if not 1 <= args["max_results"] <= MAX_SEARCH_RESULTS:
                return ValidationResult(False, f"'max_results' must be between 1 and {MAX_SEARCH_RESULTS}")
        if "topic" in args:
            err = _expect_type("topic", args["topic"], [str])
            if err:
                return ValidationResult(False, err)
            if args["topic"] not in SEARCH_TOPICS:
                return ValidationResult(False, f"'topic' must be one of {sorted(SEARCH_TOPICS)}")
        return ValidationResult(True)

    return ValidationResult(False, f"Unhandled tool: {tool}")
