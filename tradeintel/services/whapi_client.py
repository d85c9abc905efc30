"""Client for the messaging platform API: group names and media downloads."""

import logging

import httpx

from tradeintel.config import Settings

logger = logging.getLogger(__name__)


class WhapiClient:
    """Thin async wrapper over the Whapi REST API."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._base_url = settings.whapi_api_url.rstrip("/")
        self._token = settings.whapi_api_token.get_secret_value()
        self._timeout = settings.llm_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        return httpx.AsyncClient(headers=headers, timeout=self._timeout, transport=self._transport)

    async def get_group_name(self, chat_id: str) -> str | None:
        """Look up a group's display name. Returns None when unavailable."""
        if not self._token:
            return None
        try:
            async with self._client() as client:
                resp = await client.get(f"{self._base_url}/groups/{chat_id}")
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to resolve name for chat %s: %s", chat_id, e)
            return None
        name = data.get("name") or data.get("subject")
        return name.strip() if isinstance(name, str) and name.strip() else None

    async def download(self, url: str) -> bytes:
        """Fetch media bytes. Raises httpx.HTTPError on failure."""
        async with self._client() as client:
            resp = await client.get(url, follow_redirects=True)
            resp.raise_for_status()
            return resp.content


_whapi_client: WhapiClient | None = None


def get_whapi_client(settings: Settings) -> WhapiClient:
    global _whapi_client
    if _whapi_client is None:
        _whapi_client = WhapiClient(settings)
    return _whapi_client
