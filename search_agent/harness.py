"""Basic evaluation harness for the search agent."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .orchestrator import OUTCOME_FINISHED, TurnResult


@dataclass(frozen=True)
class TestCase:
    __test__ = False

    prompt: str
    expect_search: Optional[bool] = None
    expected_keywords: Sequence[str] = ()


def default_test_suite() -> List[TestCase]:
    return [
        TestCase("What is the weather in Valencia today?", expect_search=True),
        TestCase("What was the latest Real Madrid result?", expect_search=True),
        TestCase("What is the capital of France?", expect_search=False, expected_keywords=["Paris"]),
        TestCase("How many days are there in a leap year?", expect_search=False, expected_keywords=["366"]),
        TestCase("Summarise today's top technology news headline.", expect_search=True),
        TestCase("Tell me something interesting.", expect_search=None),
    ]


def evaluate_case(case: TestCase, result: TurnResult) -> Dict[str, object]:
    used_tools = [step.tool_used for step in result.steps]
    failed_tools = [
        event.get("tool")
        for event in result.events
        if event.get("type") == "tool_result" and not event.get("ok")
    ]

    finished_ok = result.outcome == OUTCOME_FINISHED
    search_ok = True
    if case.expect_search is not None:
        search_ok = bool(used_tools) == case.expect_search

    lowered = result.answer.lower()
    keywords_ok = all(keyword.lower() in lowered for keyword in case.expected_keywords)

    return {
        "prompt": case.prompt,
        "outcome": result.outcome,
        "used_tools": used_tools,
        "tool_errors": failed_tools,
        "iterations": result.iterations,
        "finished_ok": finished_ok,
        "search_ok": search_ok,
        "keywords_ok": keywords_ok,
        "passed": finished_ok and search_ok and keywords_ok,
    }


def format_summary(results: Sequence[Dict[str, object]]) -> str:
    lines = []
    passed = sum(1 for r in results if r.get("passed"))
    total = len(results)
    lines.append(f"Summary: {passed}/{total} passing")
    for idx, result in enumerate(results, start=1):
        status = "PASS" if result.get("passed") else "FAIL"
        tools = ", ".join(result.get("used_tools") or [])
        rounds = result.get("iterations", 0)
        outcome = result.get("outcome")
        line = f"{idx:02d}. {status} | {outcome} | tools=[{tools}] | rounds={rounds} | {result.get('prompt')}"
        lines.append(line)
    return "\n".join(lines)
