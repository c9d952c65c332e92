"""
Optional web lookup for factual MCQ questions
Uses the DuckDuckGo instant-answer API; failures never reach the caller
"""
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

SEARCH_URL = "https://api.duckduckgo.com/"
NO_RESULTS = "No relevant results found."
UNAVAILABLE = "Search unavailable."

SEARCH_KEYWORDS = ["history", "date", "year", "resolution", "document", "event", "period", "war", "battle"]


class WebSearch:
    def __init__(self, timeout: float = 10, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    def should_search(self, question: str) -> bool:
        """Only historical/factual questions are worth a lookup"""
        lowered = question.lower()
        return any(keyword in lowered for keyword in SEARCH_KEYWORDS)

    async def search(self, query: str) -> str:
        params = {"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(SEARCH_URL, params=params)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"[WEB_SEARCH] Search failed: {e}")
            return UNAVAILABLE

        related = data.get("RelatedTopics") or []
        first_related = related[0].get("Text") if related and isinstance(related[0], dict) else None
        return (
            data.get("AbstractText")
            or data.get("Answer")
            or first_related
            or data.get("Definition")
            or NO_RESULTS
        )
