"""Configuration helpers for the search agent."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Optional

from .llm_client import CompletionOptions
from .orchestrator import RuntimeConfig


BACKENDS = {"groq", "ollama"}


@dataclass(frozen=True)
class AgentConfig:
    llm_backend: str
    groq_api_key: Optional[str]
    groq_url: str
    groq_model: str
    ollama_url: str
    ollama_model: str
    llm_timeout_s: int
    tavily_api_key: Optional[str]
    tavily_url: str
    search_timeout_s: int
    temperature: float = 0.3
    max_tokens: int = 1024
    max_retries: int = 2
    max_history_turns: int = 10
    max_loop_iterations: int = 5
    session_ttl_s: Optional[float] = None

    @property
    def llm_model(self) -> str:
        return self.groq_model if self.llm_backend == "groq" else self.ollama_model

    def runtime_config(self) -> RuntimeConfig:
        return RuntimeConfig(
            max_loop_iterations=self.max_loop_iterations,
            max_history_turns=self.max_history_turns,
            completion=CompletionOptions(
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                max_retries=self.max_retries,
            ),
            model_timeout_s=self.llm_timeout_s,
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _normalize_backend(value: str) -> str:
    cleaned = value.strip().lower()
    if cleaned not in BACKENDS:
        raise ValueError(f"Unknown LLM backend {value!r}; expected one of {sorted(BACKENDS)}")
    return cleaned


def load_config(
    llm_backend: Optional[str] = None,
    llm_model: Optional[str] = None,
    max_loop_iterations: Optional[int] = None,
    max_history_turns: Optional[int] = None,
) -> AgentConfig:
    env_backend = os.getenv("LLM_BACKEND", "groq")
    env_groq_model = os.getenv("GROQ_MODEL", "qwen/qwen3-32b")
    env_ollama_model = os.getenv("OLLAMA_MODEL", "qwen2.5:7b-instruct")

    backend = _normalize_backend(llm_backend or env_backend)
    groq_model = env_groq_model
    ollama_model = env_ollama_model
    # --model applies to whichever backend is selected
    if llm_model and backend == "groq":
        groq_model = llm_model
    elif llm_model:
        ollama_model = llm_model

    config = AgentConfig(
        llm_backend=backend,
        groq_api_key=os.getenv("GROQ_API_KEY"),
        groq_url=os.getenv("GROQ_URL", "https://api.groq.com/openai/v1"),
        groq_model=groq_model,
        ollama_url=os.getenv("OLLAMA_URL", "http://127.0.0.1:11434"),
        ollama_model=ollama_model,
        llm_timeout_s=_env_int("LLM_TIMEOUT_S", 60),
        tavily_api_key=os.getenv("TAVILY_API_KEY"),
        tavily_url=os.getenv("TAVILY_URL", "https://api.tavily.com"),
        search_timeout_s=_env_int("SEARCH_TIMEOUT_S", 30),
        temperature=_env_float("LLM_TEMPERATURE", 0.3),
        max_tokens=_env_int("LLM_MAX_TOKENS", 1024),
        max_retries=_env_int("LLM_MAX_RETRIES", 2),
        max_history_turns=max_history_turns if max_history_turns is not None else _env_int("MAX_HISTORY_TURNS", 10),
        max_loop_iterations=max_loop_iterations if max_loop_iterations is not None else _env_int("MAX_LOOP_ITERATIONS", 5),
        session_ttl_s=_env_float("SESSION_TTL_S", None),
    )
    if config.max_loop_iterations < 1:
        raise ValueError("MAX_LOOP_ITERATIONS must be at least 1")
    if config.max_history_turns < 0:
        raise ValueError("MAX_HISTORY_TURNS must not be negative")
    if config.max_retries < 0:
        raise ValueError("LLM_MAX_RETRIES must not be negative")
    return config
