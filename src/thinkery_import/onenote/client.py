import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)

GRAPH_ONENOTE_BASE = "https://graph.microsoft.com/v1.0/me/onenote"

MAX_RETRIES = 3
RETRY_BACKOFF_SECONDS = 1.0


class PublishError(Exception):
    """Raised when a notebook, section group, section or page cannot be created."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class OneNoteAuthError(PublishError):
    """Raised on 401/403; never retried."""


class OneNoteClient:
    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = GRAPH_ONENOTE_BASE,
        timeout: float = 30.0,
        max_retries: int = MAX_RETRIES,
        retry_backoff: float = RETRY_BACKOFF_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )
        self._max_retries = max(1, max_retries)
        self._retry_backoff = retry_backoff

    async def close(self) -> None:
        await self._client.aclose()

    def _retry_delay(self, attempt: int, resp: httpx.Response | None = None) -> float:
        if resp is not None and "Retry-After" in resp.headers:
            try:
                return float(resp.headers["Retry-After"])
            except ValueError:
                pass
        return self._retry_backoff * (2 ** attempt)

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request, retrying throttling, server and transport errors."""
        for attempt in range(self._max_retries):
            last_attempt = attempt == self._max_retries - 1
            try:
                resp = await self._client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                if last_attempt:
                    raise PublishError(
                        f"{method} {url} failed after {self._max_retries} attempts: {e}"
                    ) from e
                wait = self._retry_delay(attempt)
                logger.warning(
                    "OneNote transport error on %s %s, retrying in %.1fs (attempt %d/%d): %s",
                    method, url, wait, attempt + 1, self._max_retries, e,
                )
                await asyncio.sleep(wait)
                continue

            if resp.status_code in (401, 403):
                raise OneNoteAuthError(
                    f"{method} {url} was rejected ({resp.status_code}): {_error_message(resp)}",
                    status_code=resp.status_code,
                )

            if resp.status_code == 429 or resp.status_code >= 500:
                if last_attempt:
                    raise PublishError(
                        f"{method} {url} failed after {self._max_retries} attempts "
                        f"({resp.status_code}): {_error_message(resp)}",
                        status_code=resp.status_code,
                    )
                wait = self._retry_delay(attempt, resp)
                logger.warning(
                    "OneNote returned %d for %s %s, retrying in %.1fs (attempt %d/%d)",
                    resp.status_code, method, url, wait, attempt + 1, self._max_retries,
                )
                await asyncio.sleep(wait)
                continue

            if resp.is_error:
                raise PublishError(
                    f"{method} {url} failed ({resp.status_code}): {_error_message(resp)}",
                    status_code=resp.status_code,
                )
            return resp

        raise PublishError(f"{method} {url} was not attempted")

    async def _create_container(self, url: str, name: str) -> str:
        resp = await self._request("POST", url, json={"displayName": name})
        try:
            return resp.json()["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise PublishError(
                f"POST {url} returned no id for '{name}'", status_code=resp.status_code
            ) from e

    async def create_notebook(self, name: str) -> str:
        notebook_id = await self._create_container("/notebooks", name)
        logger.info("Created notebook '%s' (%s)", name, notebook_id)
        return notebook_id

    async def create_section_group(self, notebook_id: str, name: str) -> str:
        group_id = await self._create_container(
            f"/notebooks/{notebook_id}/sectionGroups", name
        )
        logger.info("Created section group '%s' (%s)", name, group_id)
        return group_id

    async def create_section(self, section_group_id: str, name: str) -> str:
        section_id = await self._create_container(
            f"/sectionGroups/{section_group_id}/sections", name
        )
        logger.info("Created section '%s' (%s)", name, section_id)
        return section_id

    async def create_page(self, section_id: str, html: str) -> None:
        await self._request(
            "POST",
            f"/sections/{section_id}/pages",
            content=html.encode("utf-8"),
            headers={"Content-Type": "text/html"},
        )


def _error_message(resp: httpx.Response) -> str:
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return resp.text[:500]


class SimulatedOneNoteClient:
    """Stand-in for OneNoteClient that makes no network calls.

    Ids are deterministic placeholders; created pages are kept in ``pages``.
    """

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}
        self.pages: list[tuple[str, str]] = []

    def _next_id(self, kind: str) -> str:
        self._counters[kind] = self._counters.get(kind, 0) + 1
        return f"simulated-{kind}-{self._counters[kind]}"

    async def close(self) -> None:
        pass

    async def create_notebook(self, name: str) -> str:
        notebook_id = self._next_id("notebook")
        logger.info("[simulate] Notebook '%s' -> %s", name, notebook_id)
        return notebook_id

    async def create_section_group(self, notebook_id: str, name: str) -> str:
        group_id = self._next_id("section-group")
        logger.info("[simulate] Section group '%s' -> %s", name, group_id)
        return group_id

    async def create_section(self, section_group_id: str, name: str) -> str:
        section_id = self._next_id("section")
        logger.info("[simulate] Section '%s' -> %s", name, section_id)
        return section_id

    async def create_page(self, section_id: str, html: str) -> None:
        self.pages.append((section_id, html))
