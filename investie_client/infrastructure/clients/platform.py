"""Platform API HTTP transport with bearer auth and error mapping"""

import time
from typing import Any, Dict, List, Mapping, Optional

import httpx

from investie_client.config import settings
from investie_client.domain.exceptions import (
    AuthError,
    ConflictError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    PlatformAPIError,
    ValidationError,
)
from investie_client.infrastructure.observability.metrics import (
    api_failure_counter,
    api_request_duration_histogram,
)
from investie_client.services.session import TokenSession


def _error_message(body: Any, default: str) -> str:
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return default


def _field_errors(body: Any) -> Dict[str, List[str]]:
    """
    Extract field-level errors from an error body.

    Accepts the platform's ``{"fields": {"name": "msg" | [msgs]}}`` form and
    FastAPI's ``{"detail": [{"loc": [...], "msg": "..."}]}`` form.
    """
    if not isinstance(body, dict):
        return {}

    errors: Dict[str, List[str]] = {}
    fields = body.get("fields") or body.get("errors")
    if isinstance(fields, dict):
        for name, msgs in fields.items():
            errors[name] = list(msgs) if isinstance(msgs, list) else [str(msgs)]

    detail = body.get("detail")
    if isinstance(detail, list):
        for item in detail:
            if not isinstance(item, dict):
                continue
            loc = [str(p) for p in item.get("loc", []) if p not in ("body", "query", "path")]
            errors.setdefault(".".join(loc) or "__root__", []).append(str(item.get("msg", "")))
    return errors


class PlatformClient:
    """Client for the crowdfunding platform REST API"""

    def __init__(
        self,
        session: TokenSession,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.session = session
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
        endpoint: Optional[str] = None,
    ) -> Any:
        """
        Send an authenticated request and return the decoded JSON body.

        Raises:
            AuthError: No session, or 401
            PermissionDeniedError: 403
            NotFoundError: 404
            ValidationError: 400 / 422, with server field errors
            ConflictError: 409
            NetworkError: Timeout or connection failure
            PlatformAPIError: 5xx or an undecodable body
        """
        headers = {"Accept": "application/json", **self.session.auth_header()}
        label = endpoint or path
        start_time = time.perf_counter()
        status = "error"

        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        ) as client:
            try:
                response = await client.request(method, path, json=json, params=params, headers=headers)
                status = str(response.status_code)
            except httpx.TimeoutException as e:
                api_failure_counter.labels(kind="network").inc()
                raise NetworkError(f"Platform API timeout after {self.timeout}s") from e
            except httpx.RequestError as e:
                api_failure_counter.labels(kind="network").inc()
                raise NetworkError(f"Platform API unreachable: {e}") from e
            finally:
                api_request_duration_histogram.labels(method=method, endpoint=label, status=status).observe(
                    time.perf_counter() - start_time
                )

        return self._decode(response)

    def _decode(self, response: httpx.Response) -> Any:
        try:
            body = response.json() if response.content else None
        except ValueError:
            body = None

        code = response.status_code
        if code < 400:
            if response.content and body is None:
                api_failure_counter.labels(kind="server").inc()
                raise PlatformAPIError("Platform API returned a non-JSON body", code)
            return body

        message = _error_message(body, f"Platform API error: {code}")
        if code == 401:
            api_failure_counter.labels(kind="auth").inc()
            raise AuthError(message)
        if code == 403:
            api_failure_counter.labels(kind="forbidden").inc()
            raise PermissionDeniedError(message)
        if code == 404:
            api_failure_counter.labels(kind="not_found").inc()
            raise NotFoundError(message)
        if code in (400, 422):
            api_failure_counter.labels(kind="validation").inc()
            raise ValidationError(message, _field_errors(body))
        if code == 409:
            api_failure_counter.labels(kind="conflict").inc()
            raise ConflictError(message)

        api_failure_counter.labels(kind="server").inc()
        raise PlatformAPIError(message, code)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)
