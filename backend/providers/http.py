"""
HTTP helpers shared by the HTTP-backed adapters.

Non-2xx responses and transport errors become CapabilityCallFailedError
so the fallback coordinator sees one error type per failed call.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import aiohttp

from .base import CapabilityCallFailedError


@dataclass
class HTTPResponse:
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return None


async def send_request(
    method: str,
    url: str,
    provider: str,
    operation: str,
    json: Any = None,
    params: Optional[Mapping[str, str]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> HTTPResponse:
    """
    Send one request and return the raw response.

    Raises:
        CapabilityCallFailedError: On a non-2xx status
        aiohttp.ClientError: On transport failures (left to the caller so
            retry policies can match on the concrete type)
    """
    client_timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
    async with aiohttp.ClientSession(timeout=client_timeout) as session:
        async with session.request(
            method, url, json=json, params=params, headers=headers
        ) as response:
            body = await response.read()
            if response.status >= 400:
                detail = body.decode("utf-8", errors="replace").strip() or "Unknown error"
                raise CapabilityCallFailedError(
                    provider,
                    operation,
                    f"{response.status} {response.reason}: {detail[:200]}",
                )
            return HTTPResponse(
                status=response.status,
                body=body,
                headers={key: value for key, value in response.headers.items()},
            )


def wrap_transport_error(provider: str, operation: str, error: Exception) -> CapabilityCallFailedError:
    if isinstance(error, CapabilityCallFailedError):
        return error
    return CapabilityCallFailedError(provider, operation, f"{error.__class__.__name__}: {error}")
