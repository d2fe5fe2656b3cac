"""Remote operation invoker backed by the insurance HTTP API."""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger
from pydantic import ValidationError

from bitmore.core.types import OperationInvocationRequest, OperationResult
from bitmore.errors import ConfigurationError, InvocationError
from bitmore.operations.registry import (
    EmptyInput,
    InsuranceInput,
    LoanInput,
    OperationInput,
    OperationName,
    OperationRegistry,
    PurchaseInput,
    RolloverInput,
)

MALFORMED_ARGUMENTS = "malformed arguments"
UNKNOWN_OPERATION = "unknown operation"
INVALID_JSON_RESPONSE = "invalid JSON response from backend"

Handler = Callable[[httpx.AsyncClient, Any, str | None], Awaitable[httpx.Response]]


def _segment(value: str) -> str:
    return quote(value, safe="")


async def _fetch_loan_details(client: httpx.AsyncClient, params: LoanInput, _caller_id: str | None) -> httpx.Response:
    return await client.get(f"/loan/{_segment(params.loanId)}")


async def _calculate_insurance(client: httpx.AsyncClient, params: LoanInput, _caller_id: str | None) -> httpx.Response:
    return await client.get(f"/insurance/calculate/{_segment(params.loanId)}")


async def _purchase_insurance(
    client: httpx.AsyncClient, params: PurchaseInput, caller_id: str | None
) -> httpx.Response:
    user_address = params.userAddress or caller_id
    if not user_address:
        raise InvocationError("missing userAddress for purchase")
    return await client.post(
        f"/insurance/purchase/{_segment(params.loanId)}",
        json={"userAddress": user_address},
    )


async def _rollover_insurance(
    client: httpx.AsyncClient, params: RolloverInput, _caller_id: str | None
) -> httpx.Response:
    return await client.post(
        f"/insurance/rollover/{_segment(params.insuranceId)}",
        json={"newExpiryDate": params.newExpiryDate, "newStrikePrice": params.newStrikePrice},
    )


async def _cancel_insurance(
    client: httpx.AsyncClient, params: InsuranceInput, _caller_id: str | None
) -> httpx.Response:
    return await client.post(f"/insurance/cancel/{_segment(params.insuranceId)}")


async def _get_insurance_details(
    client: httpx.AsyncClient, params: LoanInput, _caller_id: str | None
) -> httpx.Response:
    return await client.get(f"/insurance/details/{_segment(params.loanId)}")


async def _get_active_insurances(
    client: httpx.AsyncClient, _params: EmptyInput, _caller_id: str | None
) -> httpx.Response:
    # The backend returns every active insurance; it takes no user filter.
    return await client.get("/insurance/active")


HANDLERS: Mapping[OperationName, Handler] = {
    OperationName.FETCH_LOAN_DETAILS: _fetch_loan_details,
    OperationName.CALCULATE_INSURANCE: _calculate_insurance,
    OperationName.PURCHASE_INSURANCE: _purchase_insurance,
    OperationName.ROLLOVER_INSURANCE: _rollover_insurance,
    OperationName.CANCEL_INSURANCE: _cancel_insurance,
    OperationName.GET_INSURANCE_DETAILS: _get_insurance_details,
    OperationName.GET_ACTIVE_INSURANCES: _get_active_insurances,
}


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    if len(text) <= width:
        return text
    available = width - len(placeholder)
    if available <= 0:
        return placeholder
    return text[:available] + placeholder


def _render_arguments(arguments: Mapping[str, Any]) -> str:
    params: list[str] = []
    for key, value in arguments.items():
        try:
            rendered = json.dumps(value, ensure_ascii=False)
        except TypeError:
            rendered = repr(value)
        params.append(f"{key}={_shorten_text(rendered)}")
    return ", ".join(params)


def error_message(response: httpx.Response | None, fallback: str) -> str:
    """Prefer the backend's human-readable `message`, else the transport message."""
    if response is not None:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message")
            if isinstance(message, str) and message.strip():
                return message
    return fallback


class OperationInvoker:
    """Turns invocation requests into backend calls and normalizes their outcome."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        registry: OperationRegistry | None = None,
        *,
        handlers: Mapping[OperationName, Handler] = HANDLERS,
        timeout_seconds: float | None = None,
    ) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds
        self._registry = registry or OperationRegistry()
        missing = [name for name in self._registry.names() if name not in handlers]
        if missing:
            raise ConfigurationError(f"No handler registered for operations: {', '.join(missing)}")
        self._handlers = dict(handlers)

    @property
    def registry(self) -> OperationRegistry:
        return self._registry

    async def invoke(self, request: OperationInvocationRequest, *, caller_id: str | None = None) -> OperationResult:
        try:
            arguments = json.loads(request.raw_arguments) if request.raw_arguments.strip() else {}
        except json.JSONDecodeError:
            logger.warning("operation.call.malformed name={} raw={}", request.name, request.raw_arguments[:100])
            return OperationResult.failure(request, MALFORMED_ARGUMENTS)
        if not isinstance(arguments, dict):
            return OperationResult.failure(request, MALFORMED_ARGUMENTS)

        spec = self._registry.get(request.name)
        if spec is None:
            logger.warning("operation.call.unknown name={}", request.name)
            return OperationResult.failure(request, UNKNOWN_OPERATION)

        try:
            params: OperationInput = spec.input_model.model_validate(arguments)
        except ValidationError as exc:
            logger.warning("operation.call.invalid name={} errors={}", request.name, exc.error_count())
            return OperationResult.failure(request, f"invalid arguments: {_describe_validation(exc)}")

        logger.info("operation.call.start name={} {{ {} }}", spec.name, _render_arguments(arguments))
        start = time.monotonic()
        result = await self._call(spec.name, params, request, caller_id)
        logger.info(
            "operation.call.end name={} ok={} duration={:.3f}ms",
            spec.name,
            result.ok,
            (time.monotonic() - start) * 1000,
        )
        return result

    async def _call(
        self,
        name: OperationName,
        params: OperationInput,
        request: OperationInvocationRequest,
        caller_id: str | None,
    ) -> OperationResult:
        handler = self._handlers[name]
        try:
            async with asyncio.timeout(self._timeout_seconds):
                response = await handler(self._client, params, caller_id)
            response.raise_for_status()
        except TimeoutError:
            logger.warning("operation.call.timeout name={} timeout={}s", name, self._timeout_seconds)
            return OperationResult.failure(request, f"backend_timeout: no response within {self._timeout_seconds}s")
        except httpx.HTTPStatusError as exc:
            return OperationResult.failure(request, error_message(exc.response, str(exc)))
        except httpx.HTTPError as exc:
            return OperationResult.failure(request, str(exc) or exc.__class__.__name__)
        except InvocationError as exc:
            return OperationResult.failure(request, str(exc))

        try:
            return OperationResult.success(request, response.json())
        except ValueError:
            return OperationResult.failure(request, INVALID_JSON_RESPONSE)

    async def invoke_all(
        self,
        requests: Sequence[OperationInvocationRequest],
        *,
        caller_id: str | None = None,
    ) -> list[OperationResult]:
        """Run every request concurrently and return results in request order."""
        outcomes = await asyncio.gather(
            *(self.invoke(request, caller_id=caller_id) for request in requests),
            return_exceptions=True,
        )
        results: list[OperationResult] = []
        for request, outcome in zip(requests, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.opt(exception=outcome).error("operation.call.error name={}", request.name)
                results.append(OperationResult.failure(request, f"{outcome.__class__.__name__}: {outcome}"))
            else:
                results.append(outcome)
        return results


def _describe_validation(exc: ValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "arguments"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


def build_backend_client(base_url: str, *, timeout_seconds: float) -> httpx.AsyncClient:
    """Build the shared HTTP client for the insurance backend."""

    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout_seconds),
        headers={"Accept": "application/json", "User-Agent": "bitmore-agent/0.1"},
    )
