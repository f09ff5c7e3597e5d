"""
Web Search Tool - Tavily-powered grounding for helpdesk answers.

Every turn can be grounded with fresh web results (deadlines, office
hours, announcements).  The formatted results are attached to the
system instruction so the model can cite them; a failed or empty
search simply leaves the turn ungrounded.
"""

from loguru import logger
import os
import time
from typing import Any, List, Optional

from infrastructure.observability import observe, update_current_observation


class WebSearchTool:
    """
    Tavily-powered web search tool.

    Returns formatted text suitable for injection into the system prompt.
    """

    def __init__(
        self,
        max_results: int = 5,
        search_depth: str = "basic",
        client: Optional[Any] = None,
    ) -> None:
        if client is None:
            api_key = os.getenv("TAVILY_API_KEY")
            if not api_key:
                raise ValueError("TAVILY_API_KEY is not set in .env")

            from tavily import TavilyClient

            client = TavilyClient(api_key=api_key)

        self.client = client
        self.max_results = max_results
        self.search_depth = search_depth

    @observe(name="web_search")
    def search(
        self,
        query: str,
        max_results: Optional[int] = None,
    ) -> Optional[str]:
        """
        Run a web search and return a formatted source list.

        Returns None when the search fails or finds nothing.
        """
        start = time.time()

        update_current_observation(input=query)

        try:
            response = self.client.search(
                query=query,
                max_results=max_results or self.max_results,
                search_depth=self.search_depth,
                include_answer=True,
                include_raw_content=False,
            )
        except Exception as exc:
            logger.warning("Web search failed: {}", exc)
            return None

        latency_ms = int((time.time() - start) * 1000)
        results = response.get("results", [])

        update_current_observation(
            metadata={
                "latency_ms": latency_ms,
                "result_count": len(results),
                "search_depth": self.search_depth,
            },
        )

        if not results:
            logger.debug("Web search returned no results for: {}", query[:80])
            return None

        lines: List[str] = []

        answer = response.get("answer")
        if answer:
            lines.append(f"Summary: {answer}\n")

        lines.append("Web sources:")
        for idx, item in enumerate(results[: self.max_results], 1):
            title = item.get("title", "")
            content = item.get("content", "")
            url = item.get("url", "")
            snippet = content[:300] + "…" if len(content) > 300 else content
            lines.append(f"  {idx}. {title}\n     {snippet}\n     URL: {url}")

        logger.debug("Web search: {} results in {}ms", len(results), latency_ms)
        return "\n".join(lines)
