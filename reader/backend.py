"""Client for the slug/UUID mapping service (server.api)."""

from __future__ import annotations

from typing import Optional

import httpx

from server.config import BackendConfig
from server.logging_config import get_logger

logger = get_logger(__name__)


class MappingClient:
    """Failures never raise: lookups return None and health returns False."""

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = config or BackendConfig()
        self._http = httpx.Client(
            base_url=self.config.url.rstrip("/") + "/",
            timeout=self.config.timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "MappingClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def get_uuid(self, slug: str, mapping_type: str) -> Optional[str]:
        try:
            response = self._http.post("get-id", json={"slug": slug, "type": mapping_type})
            if not response.is_success:
                logger.warning(f"get-id returned {response.status_code} for {slug}")
                return None
            data = response.json()
            if not isinstance(data, dict):
                logger.warning(f"get-id returned a non-object body for {slug}")
                return None
            return data.get("uuid") or None
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"Backend UUID error: {exc}")
            return None

    def get_slug(self, mapping_uuid: str) -> Optional[dict]:
        try:
            response = self._http.get(f"get-slug/{mapping_uuid}")
            if not response.is_success:
                return None
            data = response.json()
            return data if isinstance(data, dict) else None
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"Backend slug error: {exc}")
            return None

    def health(self) -> bool:
        try:
            return self._http.get("health").is_success
        except httpx.HTTPError:
            return False
