"""Command-line entrypoint for the search agent."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone
from typing import Optional

import anyio
from dotenv import load_dotenv

from .config import AgentConfig, load_config
from .conversation import DEFAULT_SESSION_ID, SessionStore
from .dispatcher import ToolDispatcher
from .harness import default_test_suite, evaluate_case, format_summary
from .llm_client import GroqClient, ModelProvider, OllamaClient
from .orchestrator import Orchestrator, TurnResult
from .search_client import TavilyClient

EXIT_COMMANDS = {"exit", "quit"}
RESET_COMMAND = "/reset"


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--backend", choices=["groq", "ollama"], default=None)
    parser.add_argument("--model", default=None)
    parser.add_argument("--max-loop-iterations", type=int, default=None)
    parser.add_argument("--max-history-turns", type=int, default=None)
    parser.add_argument("--debug", action="store_true", help="Log raw model output and decisions.")
    parser.add_argument(
        "--trace-out",
        default=None,
        help="Write JSONL trace events to a file.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="search-agent", description="LLM agent that can search the web")
    subparsers = parser.add_subparsers(dest="command", required=True)

    chat_parser = subparsers.add_parser("chat", help="Start a chat REPL")
    _add_common_args(chat_parser)
    chat_parser.add_argument("--session", default=DEFAULT_SESSION_ID)

    ask_parser = subparsers.add_parser("ask", help="Answer a single question and exit")
    _add_common_args(ask_parser)
    ask_parser.add_argument("question")

    eval_parser = subparsers.add_parser("eval", help="Run a basic eval suite")
    _add_common_args(eval_parser)
    eval_parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config(
        llm_backend=args.backend,
        llm_model=args.model,
        max_loop_iterations=args.max_loop_iterations,
        max_history_turns=args.max_history_turns,
    )
    orch = build_orchestrator(config)
    if args.command == "chat":
        return anyio.run(_run_chat, orch, args)
    if args.command == "ask":
        return anyio.run(_run_ask, orch, args)
    if args.command == "eval":
        return anyio.run(_run_eval, orch, args)
    return 0


def build_llm_client(config: AgentConfig) -> ModelProvider:
    if config.llm_backend == "ollama":
        return OllamaClient(config.ollama_url, config.ollama_model, timeout_s=config.llm_timeout_s)
    return GroqClient(
        config.groq_api_key or "",
        config.groq_model,
        base_url=config.groq_url,
        timeout_s=config.llm_timeout_s,
    )


def build_orchestrator(config: AgentConfig) -> Orchestrator:
    search = TavilyClient(
        config.tavily_api_key,
        base_url=config.tavily_url,
        timeout_s=config.search_timeout_s,
    )
    return Orchestrator(
        config.runtime_config(),
        build_llm_client(config),
        ToolDispatcher(search, timeout_s=config.search_timeout_s),
        sessions=SessionStore(ttl_seconds=config.session_ttl_s),
    )


async def _run_ask(orch: Orchestrator, args: argparse.Namespace) -> int:
    trace_sink = _open_trace_sink(args.trace_out) if args.trace_out else None
    result = await orch.run_turn(args.question)
    if trace_sink:
        _emit_turn_trace(1, args.question, result, trace_sink, _new_run_id())
        trace_sink.close()
    print(result.answer)
    return 0


async def _run_chat(orch: Orchestrator, args: argparse.Namespace) -> int:
    trace_sink = _open_trace_sink(args.trace_out) if args.trace_out else None
    run_id = _new_run_id() if trace_sink else None
    if trace_sink:
        _emit_trace_event({"event": "run_start", "run_id": run_id}, trace_sink)

    await _repl(orch, args.session, trace_sink=trace_sink, run_id=run_id)

    if trace_sink:
        _emit_trace_event({"event": "run_end", "run_id": run_id}, trace_sink)
        trace_sink.close()
    return 0


async def _run_eval(orch: Orchestrator, args: argparse.Namespace) -> int:
    results = []
    trace_sink = _open_trace_sink(args.trace_out) if args.trace_out else None
    run_id = _new_run_id() if trace_sink else None
    if trace_sink:
        _emit_trace_event({"event": "run_start", "run_id": run_id}, trace_sink)
    for idx, case in enumerate(default_test_suite(), start=1):
        # one session per case so earlier answers do not leak into the context
        turn = await orch.run_turn(case.prompt, session_id=f"eval-{idx}")
        result = evaluate_case(case, turn)
        results.append(result)
        if args.verbose:
            print(json.dumps(result, indent=2, ensure_ascii=True))
        if trace_sink:
            _emit_turn_trace(idx, case.prompt, turn, trace_sink, run_id)
    if trace_sink:
        _emit_trace_event({"event": "run_end", "run_id": run_id}, trace_sink)
        trace_sink.close()
    print(format_summary(results))
    return 0


def _open_trace_sink(path: str):
    return open(path, "a", encoding="utf-8")


def _emit_trace_event(event: dict, sink) -> None:
    event = dict(event)
    event["ts"] = _utc_now_iso()
    payload = json.dumps(event, ensure_ascii=True, default=str)
    if sink:
        sink.write(payload + "\n")
        sink.flush()
    else:
        print(payload)


def _emit_turn_trace(turn_index: int, prompt: str, result: TurnResult, sink, run_id: str | None) -> None:
    base = {"turn_index": turn_index, "prompt": prompt, "session_id": result.session_id, "run_id": run_id}
    for event in result.events:
        event_type = event.get("type")
        payload = {key: value for key, value in event.items() if key != "type"}
        _emit_trace_event({**base, "event": event_type, **payload}, sink)
    _emit_trace_event(
        {
            **base,
            "event": "turn_end",
            "outcome": result.outcome,
            "iterations": result.iterations,
            "answer": result.answer,
        },
        sink,
    )


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


async def _repl(orch: Orchestrator, session_id: str, trace_sink=None, run_id: str | None = None) -> None:
    print("Search agent (type 'exit' to quit, '/reset' to clear the conversation)")
    turn_index = 0
    while True:
        try:
            user_text = await anyio.to_thread.run_sync(lambda: input("> ").strip())
        except EOFError:
            break
        if not user_text:
            continue
        if user_text.lower() in EXIT_COMMANDS:
            break
        if user_text == RESET_COMMAND:
            orch.sessions.reset(session_id)
            print("Conversation cleared.")
            continue
        turn_index += 1
        result = await orch.run_turn(user_text, session_id=session_id)
        if trace_sink:
            _emit_turn_trace(turn_index, user_text, result, trace_sink, run_id)
        print(result.answer)
