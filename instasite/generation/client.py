"""Async streaming client for the generation backend.

The backend accepts ``POST /chat`` with ``{"messages": "<prompt>"}`` and
answers with a chunked ``text/plain`` body containing the model's response
as it is produced. Fragment boundaries carry no meaning; callers append them
to a :class:`~instasite.parser.ResponseBuffer` and re-parse.

Typical usage::

    client = GenerationClient("http://localhost:3000")
    async for fragment in client.stream("A landing page for a bakery"):
        buffer.append(fragment)
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx


class GenerationError(Exception):
    """Raised when the backend cannot be reached or rejects the request."""


class GenerationClient:
    """Streams generated text from the backend over HTTP.

    Uses ``httpx.AsyncClient`` streaming so fragments are yielded as soon as
    they arrive rather than after the response completes.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        endpoint: str = "/chat",
        timeout: int = 300,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.endpoint = endpoint
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient`` configured with our base URL and timeout."""
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=10.0),
        )

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        """Send *prompt* and yield decoded response fragments.

        Raises:
            GenerationError: On connection failure, timeout or a non-2xx
                status. Fragments already yielded stay valid.
        """
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", self.endpoint, json={"messages": prompt}
                ) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        raise GenerationError(
                            f"Backend returned HTTP {response.status_code}: {body[:500]}"
                        )
                    async for fragment in response.aiter_text():
                        if fragment:
                            yield fragment
        except httpx.ConnectError as exc:
            raise GenerationError(
                f"Cannot connect to the generation backend at {self.base_url}. Is it running?"
            ) from exc
        except httpx.TimeoutException as exc:
            raise GenerationError(
                f"Generation request timed out after {self.timeout}s."
            ) from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"Generation request failed: {exc}") from exc
