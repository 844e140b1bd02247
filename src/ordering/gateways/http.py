"""Shared plumbing for calls to upstream HTTP services."""

import time

import httpx
import structlog

from shared.errors import ServiceUnavailable

logger = structlog.get_logger(__name__)


class TransientFailure(Exception):
    """An upstream answered with a 5xx status."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"{response.request.method} {response.request.url} returned {response.status_code}")
        self.response = response


def bearer(token) -> dict:
    return {"Authorization": f"Bearer {token}"} if token else {}


class HttpGateway:
    """Base for gateways talking to a single upstream service.

    ``transport`` lets tests plug in an ``httpx.MockTransport``.
    """

    service = "upstream"

    def __init__(self, base_url, timeout=5.0, max_attempts=1, backoff=0.0, transport=None, sleep=time.sleep):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.backoff = backoff
        self._transport = transport
        self._sleep = sleep

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    def _send(self, method, url, **kwargs) -> httpx.Response:
        """Single attempt; 5xx answers surface as ``TransientFailure``."""
        with self._client() as client:
            response = client.request(method, url, **kwargs)
        if response.status_code >= 500:
            raise TransientFailure(response)
        return response

    def _send_once(self, method, url, **kwargs) -> httpx.Response:
        try:
            return self._send(method, url, **kwargs)
        except (httpx.TransportError, TransientFailure) as exc:
            logger.error("Upstream call failed", service=self.service, url=url, error=str(exc))
            raise ServiceUnavailable(self.service) from exc

    def _send_with_retry(self, method, url, **kwargs) -> httpx.Response:
        """Retry transport errors and 5xx answers with exponential backoff."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._send(method, url, **kwargs)
            except (httpx.TransportError, TransientFailure) as exc:
                if attempt >= self.max_attempts:
                    logger.error(
                        "Upstream call failed after retries",
                        service=self.service,
                        url=url,
                        attempts=attempt,
                        error=str(exc),
                    )
                    raise ServiceUnavailable(self.service) from exc
                delay = self.backoff * 2 ** (attempt - 1)
                logger.warning(
                    "Transient upstream failure, retrying",
                    service=self.service,
                    url=url,
                    attempt=attempt,
                    delay=delay,
                )
                self._sleep(delay)
