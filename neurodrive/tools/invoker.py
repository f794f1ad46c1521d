from __future__ import annotations

import time
from typing import Any, Mapping

import httpx

from neurodrive.core import metrics
from neurodrive.core.config import InvokerSettings
from neurodrive.core.logging import get_logger

from .models import InvocationOutcome

__all__ = ["ToolInvoker", "embedded_error", "is_empty_payload"]

logger = get_logger(name=__name__)

MAX_ERROR_BODY_LENGTH = 500


def is_empty_payload(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) == 0
    return False


def embedded_error(body: Any, *, result_key: str | None = None) -> str | None:
    """Return the embedded error of a 2xx body that carries no usable payload.

    A body such as ``{"error": "quota exceeded", "flights": []}`` is a failure even
    though the transport succeeded. The primary payload is ``result_key`` when the
    tool declares one, otherwise every field besides ``error``.
    """

    if not isinstance(body, Mapping):
        return None
    error = body.get("error")
    if not error:
        return None
    if result_key:
        payload_empty = is_empty_payload(body.get(result_key))
    else:
        payload_empty = all(is_empty_payload(value) for key, value in body.items() if key != "error")
    if not payload_empty:
        return None
    if isinstance(error, Mapping):
        return str(error.get("message") or error)
    return str(error)


class ToolInvoker:
    """Performs exactly one POST against a tool endpoint and never raises."""

    def __init__(self, settings: InvokerSettings, http_client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=settings.timeout_seconds,
            verify=settings.verify_ssl,
        )

    def resolve_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        path = self._settings.functions_path.format(endpoint=endpoint.strip("/"))
        return f"{self._settings.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._settings.api_key:
            headers["Authorization"] = f"Bearer {self._settings.api_key}"
        headers.update(self._settings.extra_headers)
        return headers

    async def invoke(
        self,
        tool_name: str,
        endpoint: str,
        params: Mapping[str, Any],
        *,
        result_key: str | None = None,
    ) -> InvocationOutcome:
        url = self.resolve_url(endpoint)
        start = time.perf_counter()
        logger.info("tool_invocation_started", tool=tool_name, url=url)
        try:
            response = await self._client.post(
                url,
                json=dict(params),
                headers=self._headers(),
                timeout=self._settings.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            return self._failure(tool_name, start, f"Timed out after {self._settings.timeout_seconds}s", exc=exc)
        except httpx.HTTPError as exc:
            return self._failure(tool_name, start, str(exc) or exc.__class__.__name__, exc=exc)
        except Exception as exc:  # invalid URL or unserializable params
            return self._failure(tool_name, start, str(exc) or exc.__class__.__name__, exc=exc)

        if not response.is_success:
            text = response.text[:MAX_ERROR_BODY_LENGTH]
            return self._failure(
                tool_name,
                start,
                f"HTTP {response.status_code}: {text}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            return self._failure(
                tool_name,
                start,
                "Invalid JSON response",
                status_code=response.status_code,
                exc=exc,
            )

        error = embedded_error(body, result_key=result_key)
        if error is not None:
            return self._failure(
                tool_name,
                start,
                error,
                status_code=response.status_code,
                data=body,
                outcome="embedded_error",
            )

        latency = time.perf_counter() - start
        metrics.observe_tool_invocation(tool=tool_name, outcome="success", latency=latency)
        logger.info("tool_invocation_succeeded", tool=tool_name, status=response.status_code, latency=round(latency, 4))
        return InvocationOutcome(
            tool=tool_name,
            success=True,
            data=body,
            status_code=response.status_code,
            latency=latency,
        )

    def _failure(
        self,
        tool_name: str,
        start: float,
        error: str,
        *,
        status_code: int | None = None,
        data: Any = None,
        outcome: str = "failure",
        exc: BaseException | None = None,
    ) -> InvocationOutcome:
        latency = time.perf_counter() - start
        metrics.observe_tool_invocation(tool=tool_name, outcome=outcome, latency=latency)
        logger.warning(
            "tool_invocation_failed",
            tool=tool_name,
            status=status_code,
            error=error,
            exception=exc.__class__.__name__ if exc is not None else None,
        )
        return InvocationOutcome(
            tool=tool_name,
            success=False,
            data=data,
            error=error,
            status_code=status_code,
            latency=latency,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
