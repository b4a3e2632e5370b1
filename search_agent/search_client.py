"""Web search client (Tavily)."""

from __future__ import annotations

from typing import Any, Dict, Optional

from .errors import ProviderError
from .llm_client import post_with_retries


class TavilyClient:
    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.tavily.com",
        timeout_s: int = 30,
        max_retries: int = 1,
        default_max_results: int = 5,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.default_max_results = default_max_results

    def search(self, query: str, **options: Any) -> Dict[str, Any]:
        if not self.api_key:
            raise ProviderError("tavily", "TAVILY_API_KEY is not set")
        payload: Dict[str, Any] = {
            "query": query,
            "max_results": options.get("max_results", self.default_max_results),
            "topic": options.get("topic", "general"),
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = post_with_retries(
            "tavily",
            f"{self.base_url}/search",
            payload,
            headers=headers,
            timeout_s=self.timeout_s,
            max_retries=self.max_retries,
        )
        return _clean_results(data)


def _clean_results(data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep the fields the model can use; drop raw content and scoring noise."""
    results = []
    for item in data.get("results", []) or []:
        if not isinstance(item, dict):
            continue
        results.append(
            {
                "title": item.get("title"),
                "url": item.get("url"),
                "content": item.get("content"),
            }
        )
    cleaned: Dict[str, Any] = {"query": data.get("query"), "results": results}
    if data.get("answer"):
        cleaned["answer"] = data["answer"]
    return cleaned
