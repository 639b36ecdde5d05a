# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""HTTP transport for the Stable Diffusion WebUI API.

This module owns the single ``httpx.AsyncClient`` used for every remote call and
classifies transport failures into the ``SDWebUIAPIError`` hierarchy.
"""

import httpx
from awslabs.sd_webui_mcp_server.config import SDWebUIConfig
from loguru import logger
from typing import Any, Dict, Optional


class SDWebUIAPIError(Exception):
    """Base exception for Stable Diffusion WebUI API errors.

    Attributes:
        message: Human-readable error message, prefixed with the failure kind.
        error_code: Short classification of the failure.
        status_code: HTTP status returned by the WebUI, if any.
    """
    prefix = 'Request error'

    def __init__(self, detail: str, error_code: str = 'Unknown', status_code: Optional[int] = None):
        """Initialize SDWebUIAPIError.

        Args:
            detail: Description of the failure, without the prefix.
            error_code: Short classification of the failure.
            status_code: HTTP status returned by the WebUI, if any.
        """
        self.detail = detail
        self.error_code = error_code
        self.status_code = status_code
        self.message = f'{self.prefix}: {detail}'
        super().__init__(self.message)


class RemoteResponseError(SDWebUIAPIError):
    """The WebUI answered with an error status."""
    prefix = 'API error'


class NoResponseError(SDWebUIAPIError):
    """The request was sent but no response arrived (refused, timed out, dropped)."""
    prefix = 'No response'


class RequestSetupError(SDWebUIAPIError):
    """The request could not be built or sent."""
    prefix = 'Request error'


def _error_detail(response: httpx.Response) -> str:
    """Pull the most useful error text out of a WebUI error response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ('error', 'detail'):
            if body.get(key):
                return str(body[key])
    return f'Request failed with status code {response.status_code}'


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class SDWebUIClient:
    """Configured client for the Stable Diffusion WebUI API.

    Holds no per-call state, so one instance is shared by all concurrent tool calls.
    """

    def __init__(
        self,
        config: SDWebUIConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client from the process configuration.

        Args:
            config: Server configuration (base URL, credentials, timeout).
            transport: Optional transport override, used by tests.
        """
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.webui_url,
            auth=config.basic_auth,
            headers={'Content-Type': 'application/json'},
            timeout=config.request_timeout,
            transport=transport,
        )
        logger.info(
            f'Stable Diffusion WebUI client initialized for {config.webui_url}',
            extra={
                'base_url': config.webui_url,
                'basic_auth': config.basic_auth is not None,
                'timeout_ms': config.request_timeout_ms,
            },
        )

    async def request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Endpoint path relative to the base URL.
            payload: JSON body, if any.
            timeout: Per-request timeout in seconds, overriding the configured one.

        Returns:
            The decoded JSON response, or None for an empty body.

        Raises:
            RemoteResponseError: If the WebUI returned an error status.
            NoResponseError: If no response was received.
            RequestSetupError: If the request could not be built or sent.
        """
        logger.debug(
            f'Sending {method} {path}',
            extra={'path': path, 'payload_keys': list(payload.keys()) if payload else []},
        )
        kwargs: Dict[str, Any] = {}
        if payload is not None:
            kwargs['json'] = payload
        if timeout is not None:
            kwargs['timeout'] = timeout

        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.debug(
                f'WebUI API error: {status_code} on {path}',
                extra={'path': path, 'status_code': status_code},
            )
            raise RemoteResponseError(
                _error_detail(e.response), error_code='HTTPStatusError', status_code=status_code
            ) from e
        except httpx.UnsupportedProtocol as e:
            raise RequestSetupError(_describe(e), error_code=type(e).__name__) from e
        except httpx.TransportError as e:
            logger.debug(f'No response from WebUI on {path}: {_describe(e)}', extra={'path': path})
            raise NoResponseError(_describe(e), error_code=type(e).__name__) from e
        except (httpx.HTTPError, httpx.InvalidURL, TypeError, ValueError) as e:
            logger.debug(f'Failed to send request to {path}: {_describe(e)}', extra={'path': path})
            raise RequestSetupError(_describe(e), error_code=type(e).__name__) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteResponseError(
                f'Invalid JSON in response from {path}',
                error_code='InvalidResponse',
                status_code=response.status_code,
            ) from e

    async def get(self, path: str) -> Any:
        """Send a GET request and return the decoded JSON body."""
        return await self.request('GET', path)

    async def post(
        self,
        path: str,
        payload: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> Any:
        """Send a POST request with a JSON body and return the decoded JSON body."""
        return await self.request('POST', path, payload=payload, timeout=timeout)

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> 'SDWebUIClient':
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
