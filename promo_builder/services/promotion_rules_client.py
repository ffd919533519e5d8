"""
HTTP client for the promotion rules API.

Covers the endpoints this package talks to:
- POST   /admin/promotion-rules       submit a compiled rule
- GET    /admin/promotion-rules       list stored rules
- DELETE /admin/promotion-rules/{id}  delete a stored rule
- POST   /evaluate                    run the external evaluation engine on the cart

The API answers with a `{success, message, data}` envelope. A failed request
raises ApiError carrying the server's `message` unchanged so it can be shown
to the user verbatim. Only connection failures are retried (by the transport);
rejected submissions are reported, never resent.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
from pydantic import ValidationError

from promo_builder.api.schemas.promotion_rule import (
    ApiResponse,
    PromotionRule,
    PromotionRuleList,
)
from promo_builder.compiler.canonicalizer import to_canonical_json_string
from promo_builder.core.config import settings
from promo_builder.core.errors import ApiError
from promo_builder.core.observability import generate_request_id, get_request_id, metrics

logger = logging.getLogger(__name__)

PROMOTION_RULES_PATH = "/admin/promotion-rules"
EVALUATE_PATH = "/evaluate"


class PromotionRulesClient:
    """Synchronous client for the promotion rules API."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.token = token if token is not None else settings.api_token
        self.timeout = timeout if timeout is not None else settings.api_timeout_seconds

        if transport is None:
            retries = max_retries if max_retries is not None else settings.api_max_retries
            transport = httpx.HTTPTransport(retries=retries)

        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def __enter__(self) -> PromotionRulesClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def get_auth_header(self) -> dict[str, str]:
        """Authorization header for the configured token, normalized to Bearer format."""
        if not self.token:
            return {}
        token = self.token
        if not token.lower().startswith("bearer "):
            token = f"Bearer {token}"
        return {"Authorization": token}

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def create_rule(self, rule: PromotionRule) -> ApiResponse:
        """
        Submit a compiled rule.

        The body is the canonical JSON of `rule`. Run `validate_rule` first;
        this method sends whatever it is given.

        Raises:
            ApiError: If the API answers `success: false`, a non-2xx status, or
                cannot be reached
        """
        body = to_canonical_json_string(rule).encode("utf-8")
        response = self._request(
            "POST",
            PROMOTION_RULES_PATH,
            endpoint="create_rule",
            content=body,
            headers={"Content-Type": "application/json"},
        )
        envelope = _parse_envelope(response, "Failed to create promotion rule")
        logger.info("Promotion rule %r submitted: %s", rule.name, envelope.message)
        return envelope

    def list_rules(self, search: str | None = None) -> PromotionRuleList:
        """
        List stored promotion rules, optionally filtered by a search term.

        Raises:
            ApiError: On a non-2xx status or an unexpected response body
        """
        params = {"search": search} if search else None
        response = self._request("GET", PROMOTION_RULES_PATH, endpoint="list_rules", params=params)
        payload = _json_or_none(response)
        if response.is_error:
            raise _error_from(response, payload, "Failed to fetch promotion rules")
        try:
            return PromotionRuleList.model_validate(payload)
        except ValidationError as e:
            raise ApiError(
                "Unexpected response from the promotion rules API",
                status_code=response.status_code,
                details={"errors": e.errors(include_url=False)},
            ) from e

    def delete_rule(self, rule_id: int | str) -> ApiResponse:
        """
        Delete a stored promotion rule by id.

        Raises:
            ApiError: If the API rejects the deletion or cannot be reached
        """
        response = self._request(
            "DELETE", f"{PROMOTION_RULES_PATH}/{rule_id}", endpoint="delete_rule"
        )
        if response.status_code == httpx.codes.NO_CONTENT:
            return ApiResponse(success=True)
        return _parse_envelope(response, "Failed to delete promotion rule")

    def evaluate_cart(self) -> dict[str, Any]:
        """
        Ask the external evaluation engine to apply active rules to the current cart.

        Returns the engine's JSON body unchanged; its shape is owned by the engine.

        Raises:
            ApiError: On a non-2xx status or a non-JSON body
        """
        response = self._request("POST", EVALUATE_PATH, endpoint="evaluate")
        payload = _json_or_none(response)
        if response.is_error:
            raise _error_from(response, payload, "Failed to evaluate cart")
        if not isinstance(payload, dict):
            raise ApiError(
                "Unexpected response from the evaluation engine",
                status_code=response.status_code,
            )
        return payload

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        endpoint: str,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        request_headers = {
            settings.observability_request_id_header: get_request_id() or generate_request_id(),
            **self.get_auth_header(),
            **(headers or {}),
        }

        start_time = time.perf_counter()
        try:
            response = self.client.request(method, path, headers=request_headers, **kwargs)
        except httpx.HTTPError as e:
            _record_api_metrics(method, endpoint, "transport_error", start_time)
            logger.error("%s %s failed: %s", method, path, e)
            raise ApiError(
                f"Could not reach the promotion rules API: {e}",
                details={"method": method, "path": path},
            ) from e

        outcome = "error" if response.is_error else "ok"
        _record_api_metrics(method, endpoint, outcome, start_time)
        logger.debug("%s %s -> %d", method, path, response.status_code)
        return response


def _record_api_metrics(method: str, endpoint: str, outcome: str, start_time: float) -> None:
    metrics.api_requests_total.labels(method=method, endpoint=endpoint, outcome=outcome).inc()
    metrics.api_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
        time.perf_counter() - start_time
    )


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_from(response: httpx.Response, payload: Any, fallback: str) -> ApiError:
    message = payload.get("message") if isinstance(payload, dict) else None
    return ApiError(
        message or fallback,
        status_code=response.status_code,
        details={"url": str(response.request.url)},
    )


def _parse_envelope(response: httpx.Response, fallback: str) -> ApiResponse:
    """
    Parse a `{success, message, data}` envelope.

    Raises:
        ApiError: On a non-2xx status, a malformed envelope, or `success: false`
    """
    payload = _json_or_none(response)
    if response.is_error:
        raise _error_from(response, payload, fallback)

    try:
        envelope = ApiResponse.model_validate(payload)
    except ValidationError as e:
        raise ApiError(
            "Unexpected response from the promotion rules API",
            status_code=response.status_code,
            details={"errors": e.errors(include_url=False)},
        ) from e

    if not envelope.success:
        raise ApiError(envelope.message or fallback, status_code=response.status_code)
    return envelope
