"""Client for the external encyclopedia service (Wikipedia's MediaWiki action API)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Final, List, Mapping

import httpx

from .errors import NotFoundError, UpstreamServiceError

logger = logging.getLogger(__name__)

_DEFAULT_ENDPOINT: Final[str] = "https://en.wikipedia.org/w/api.php"
_TIMEOUT: Final[float] = 30.0
_USER_AGENT: Final[str] = "lumina-agent/0.1 (knowledge base agent)"


@dataclass
class ReferencePage:
    id: int
    title: str
    summary: str = ""

    def to_payload(self) -> Mapping[str, Any]:
        return {"title": self.title, "id": self.id, "summary": self.summary}


class WikipediaClient:
    """Search Wikipedia and fetch plain-text article bodies."""

    def __init__(
        self,
        *,
        endpoint: str = _DEFAULT_ENDPOINT,
        client: httpx.Client | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._client = client or httpx.Client(
            timeout=_TIMEOUT, headers={"User-Agent": _USER_AGENT}
        )

    def _query(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        request_params = {"action": "query", "format": "json", "formatversion": 2, **params}
        logger.debug("Wikipedia request: %s", request_params)
        try:
            response = self._client.get(self.endpoint, params=request_params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamServiceError(
                f"Wikipedia API error: {exc.response.status_code} - {exc.response.text[:200]}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamServiceError(f"Wikipedia request failed: {exc}") from exc
        if "error" in data:
            raise UpstreamServiceError(f"Wikipedia API error: {data['error'].get('info', data['error'])}")
        return data

    def search(self, query: str, limit: int = 3) -> List[ReferencePage]:
        """Return up to ``limit`` pages ranked by Wikipedia's own search, with intro summaries."""

        data = self._query(
            {
                "generator": "search",
                "gsrsearch": query,
                "gsrlimit": limit,
                "prop": "extracts",
                "exintro": 1,
                "explaintext": 1,
                "exlimit": limit,
            }
        )
        pages = data.get("query", {}).get("pages", [])
        pages = sorted(pages, key=lambda page: page.get("index", 0))
        return [
            ReferencePage(
                id=int(page["pageid"]),
                title=page.get("title", ""),
                summary=page.get("extract", ""),
            )
            for page in pages
            if "pageid" in page
        ]

    def page_content(self, page_id: int | str) -> tuple[str, str]:
        """Return ``(title, plain text)`` of the article with ``page_id``."""

        data = self._query(
            {
                "prop": "extracts",
                "explaintext": 1,
                "pageids": str(page_id),
            }
        )
        pages = data.get("query", {}).get("pages", [])
        if not pages or pages[0].get("missing") or pages[0].get("invalid"):
            raise NotFoundError(f"Wikipedia page {page_id} not found")
        page = pages[0]
        return page.get("title", ""), page.get("extract", "")

    def close(self) -> None:
        self._client.close()


__all__ = ["ReferencePage", "WikipediaClient"]
