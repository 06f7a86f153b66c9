import httpx
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
from typing import Any, Dict, Optional

from docsearch.core.config import settings

log = structlog.get_logger(__name__)

# Only transport failures are retried; an HTTP error status is a definitive answer.
_retry_on_network_error = retry(
    stop=stop_after_attempt(settings.HTTP_CLIENT_MAX_RETRIES),
    wait=wait_exponential(multiplier=settings.HTTP_CLIENT_BACKOFF_FACTOR),
    retry=retry_if_exception_type(httpx.RequestError),
    reraise=True,
)


class BaseServiceClient:
    """Cliente HTTP asincrono para APIs internas de otros servicios."""

    def __init__(self, base_url: str, service_name: str, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url
        self.service_name = service_name
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=settings.HTTP_CLIENT_TIMEOUT)
        self.log = log.bind(remote_service=service_name)

    async def close(self):
        await self.client.aclose()
        self.log.info("HTTP client closed.")

    @_retry_on_network_error
    async def _request(self, method: str, endpoint: str, json: Optional[Dict[str, Any]] = None) -> httpx.Response:
        self.log.debug("Calling remote service", method=method, endpoint=endpoint)
        try:
            response = await self.client.request(method, endpoint, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.log.error("Remote service answered with an error status", endpoint=endpoint,
                           status_code=e.response.status_code, detail=e.response.text[:500])
            raise
        except httpx.RequestError as e:
            self.log.warning("Network error calling remote service", endpoint=endpoint, error=str(e))
            raise
        return response

    async def patch(self, endpoint: str, body: Dict[str, Any]) -> httpx.Response:
        return await self._request("PATCH", endpoint, json=body)
