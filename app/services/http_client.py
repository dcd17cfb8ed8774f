"""
Shared request logic for the marketplace REST clients.

Every platform client funnels through ``_make_request`` so HTTP failures are
mapped onto the same exception types regardless of marketplace:

    404            -> ListingNotFoundError
    429            -> RateLimitedError (with Retry-After when sent)
    5xx            -> TransientNetworkError
    other 4xx      -> ValidationRejectedError
    network errors -> TransientNetworkError
"""
import json
import logging
from typing import Dict, Optional, Any

import httpx

from app.core.exceptions import (
    ListingNotFoundError,
    RateLimitedError,
    TransientNetworkError,
    ValidationRejectedError,
)

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = ("Authorization", "x-api-key")


def _parse_body(response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def raise_for_platform_status(platform: str, response) -> None:
    status = response.status_code
    if 200 <= status < 300:
        return

    body = _parse_body(response)
    message = f"{platform} API error {status}: {str(response.text)[:500]}"

    if status == 404:
        raise ListingNotFoundError(message)
    if status == 429:
        retry_after = None
        try:
            retry_after = float(response.headers.get("Retry-After"))
        except (TypeError, ValueError):
            pass
        raise RateLimitedError(message, retry_after=retry_after)
    if status >= 500:
        raise TransientNetworkError(message)
    raise ValidationRejectedError(message, payload=body, status_code=status)


class BasePlatformClient:
    """
    Thin async REST client bound to one access token.

    Subclasses set ``PLATFORM`` and ``BASE_URL`` and override ``_get_headers``.
    """

    PLATFORM = "platform"
    BASE_URL = ""

    def __init__(self, access_token: str, timeout: float = 30.0):
        self.access_token = access_token
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Any] = None,
        params: Optional[Dict] = None,
        headers: Optional[Dict[str, str]] = None,
        files: Optional[Dict] = None,
    ) -> Any:
        """
        Make a request to the platform API.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            endpoint: API endpoint (without base URL)
            data: JSON payload
            params: Query parameters
            headers: Extra headers merged over the defaults
            files: Multipart upload; sent instead of a JSON body

        Returns:
            Parsed JSON body, or {} for empty responses
        """
        url = f"{self.BASE_URL}/{endpoint.lstrip('/')}"
        request_headers = self._get_headers()
        if headers:
            request_headers.update(headers)
        if files:
            # httpx sets the multipart boundary itself
            request_headers.pop("Content-Type", None)

        masked_headers = {
            k: ("[REDACTED]" if k in SENSITIVE_HEADERS else v) for k, v in request_headers.items()
        }
        logger.debug(f"Making {method} request to {url}")
        logger.debug(f"Headers: {masked_headers}")
        if params:
            logger.debug(f"Params: {params}")
        if data:
            logger.debug(f"Data: {json.dumps(data, default=str)[:500]}...")

        request_kwargs = {"method": method, "url": url, "headers": request_headers, "params": params}
        if files:
            request_kwargs["files"] = files
            request_kwargs["data"] = data
        else:
            request_kwargs["json"] = data

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(**request_kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"{self.PLATFORM} timeout on {method} {url}: {str(e)}")
            raise TransientNetworkError(f"Request timed out: {str(e)}")
        except httpx.RequestError as e:
            logger.error(f"{self.PLATFORM} network error on {method} {url}: {str(e)}")
            raise TransientNetworkError(f"Network error: {str(e)}")

        if not 200 <= response.status_code < 300:
            logger.warning(f"{self.PLATFORM} {method} {url} returned {response.status_code}")
        raise_for_platform_status(self.PLATFORM, response)

        if response.status_code == 204 or not response.content:
            return {}
        return _parse_body(response)
