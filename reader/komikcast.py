"""KomikCast content client.

Every request goes through the proxy as ``proxy_url + quote(target_url)``.
The scraper wraps payloads in a few different envelopes; ``unwrap``
picks the content out. Results are cached per target URL.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import quote, urlencode

import httpx

from server.config import KomikCastConfig
from server.logging_config import get_logger

logger = get_logger(__name__)

# Same characters JavaScript's encodeURIComponent leaves alone.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def unwrap(payload: Any) -> Any:
    """Return the content of a scraper response, or None when it failed.

    Tried in order: result.content, result.data, data, content, the body itself.
    """
    if not isinstance(payload, dict) or not payload.get("success"):
        return None
    result = payload.get("result")
    if isinstance(result, dict):
        for key in ("content", "data"):
            if result.get(key):
                return result[key]
    for key in ("data", "content"):
        if payload.get(key):
            return payload[key]
    return payload


class KomikCastClient:
    def __init__(
        self,
        config: Optional[KomikCastConfig] = None,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or KomikCastConfig()
        self._http = httpx.Client(timeout=self.config.timeout, transport=transport)
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._clock = clock

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "KomikCastClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def fetch(self, url: str) -> Any:
        """GET url through the proxy; None on any HTTP, transport or decode error."""
        cached = self._cache.get(url)
        if cached and self._clock() - cached[1] < self.config.cache_seconds:
            return cached[0]

        proxied = self.config.proxy_url + quote(url, safe=_URI_COMPONENT_SAFE)
        try:
            response = self._http.get(proxied)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            logger.error(f"API error for {url}: {exc}")
            return None
        except ValueError as exc:
            logger.error(f"API returned invalid JSON for {url}: {exc}")
            return None

        result = unwrap(payload)
        if result:
            self._cache[url] = (result, self._clock())
        return result

    def home(self) -> Any:
        return self.fetch(self._url("home"))

    def detail(self, slug: str) -> Any:
        return self.fetch(self._url(f"detail/{slug}"))

    def chapter(self, slug: str) -> Any:
        return self.fetch(self._url(f"chapter/{slug}"))

    def search(self, query: str, page: int = 1) -> Any:
        return self.fetch(self._url(f"search/{quote(query, safe=_URI_COMPONENT_SAFE)}/{page}"))

    def genre(self, slug: str, page: int = 1) -> Any:
        return self.fetch(self._url(f"genre/{slug}/{page}"))

    def list(
        self,
        status: Optional[str] = None,
        type: Optional[str] = None,
        orderby: Optional[str] = None,
        page: Optional[int] = None,
    ) -> Any:
        params = {
            k: v
            for k, v in (
                ("status", status),
                ("type", type),
                ("orderby", orderby),
                ("page", page),
            )
            if v is not None
        }
        return self.fetch(self._url("list") + "?" + urlencode(params))

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)
