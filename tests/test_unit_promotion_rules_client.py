"""
Tests for the promotion rules API client.

Uses httpx.MockTransport; no network access.
"""

import httpx
import pytest

from promo_builder.compiler.canonicalizer import to_canonical_json_string
from promo_builder.compiler.compiler import compile_rule
from promo_builder.core.errors import ApiError
from promo_builder.core.observability import set_correlation_id
from promo_builder.services.promotion_rules_client import PromotionRulesClient

# =============================================================================
# POST /admin/promotion-rules
# =============================================================================


class TestCreateRule:
    def test_success(self, api_client, api_handler, simple_graph, spring_sale_metadata, fixed_now):
        rule = compile_rule(simple_graph, spring_sale_metadata, now=fixed_now)

        response = api_client.create_rule(rule)

        assert response.success is True
        assert response.message == "Promotion rule created"
        assert response.data == {"id": 1}

        request = api_handler.requests[-1]
        assert request.method == "POST"
        assert request.url == "http://rules.test/api/admin/promotion-rules"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert request.headers["X-Request-ID"]
        assert request.content.decode("utf-8") == to_canonical_json_string(rule)
        assert api_handler.last_json["conditions"][0]["value"] == 42

    def test_correlation_id_propagated(self, api_client, api_handler, simple_graph, fixed_now):
        set_correlation_id("req-123")
        try:
            api_client.create_rule(compile_rule(simple_graph, now=fixed_now))
        finally:
            set_correlation_id("")

        assert api_handler.requests[-1].headers["X-Request-ID"] == "req-123"

    def test_unsuccessful_envelope_message_verbatim(
        self, api_client, api_handler, simple_graph, fixed_now
    ):
        api_handler.body = {"success": False, "message": "The name has already been taken."}

        with pytest.raises(ApiError) as exc_info:
            api_client.create_rule(compile_rule(simple_graph, now=fixed_now))

        assert exc_info.value.message == "The name has already been taken."
        assert exc_info.value.status_code == 200

    def test_error_status_uses_server_message(
        self, api_client, api_handler, simple_graph, fixed_now
    ):
        api_handler.status_code = 422
        api_handler.body = {"success": False, "message": "The salience field must be an integer."}

        with pytest.raises(ApiError) as exc_info:
            api_client.create_rule(compile_rule(simple_graph, now=fixed_now))

        assert exc_info.value.message == "The salience field must be an integer."
        assert exc_info.value.status_code == 422

    def test_error_status_without_body_uses_fallback(
        self, api_client, api_handler, simple_graph, fixed_now
    ):
        api_handler.status_code = 500
        api_handler.raw_body = b"<html>Server Error</html>"

        with pytest.raises(ApiError) as exc_info:
            api_client.create_rule(compile_rule(simple_graph, now=fixed_now))

        assert exc_info.value.message == "Failed to create promotion rule"
        assert exc_info.value.status_code == 500

    def test_malformed_envelope(self, api_client, api_handler, simple_graph, fixed_now):
        api_handler.body = {"ok": True}

        with pytest.raises(ApiError, match="Unexpected response"):
            api_client.create_rule(compile_rule(simple_graph, now=fixed_now))

    def test_transport_error(self, api_client, api_handler, simple_graph, fixed_now):
        api_handler.error = lambda request: httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ApiError, match="Could not reach") as exc_info:
            api_client.create_rule(compile_rule(simple_graph, now=fixed_now))

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


# =============================================================================
# GET / DELETE / evaluate
# =============================================================================


class TestOtherEndpoints:
    def test_list_rules(self, api_client, api_handler):
        api_handler.body = {
            "data": [
                {
                    "id": 3,
                    "name": "Spring Sale",
                    "salience": 10,
                    "stackable": True,
                    "active": True,
                    "valid_from": None,
                    "valid_until": "2025-06-30T00:00:00.000000Z",
                    "conditions": [{"type": "product_id", "operator": "equals", "value": 42}],
                    "actions": [{"type": "percentage_discount", "value": 15}],
                    "created_at": "2025-03-01T09:30:00.000000Z",
                    "updated_at": "2025-03-01T09:30:00.000000Z",
                }
            ],
            "total": 1,
        }

        result = api_client.list_rules(search="spring")

        assert result.total == 1
        assert result.data[0].id == 3
        assert result.data[0].valid_until.year == 2025
        request = api_handler.requests[-1]
        assert request.method == "GET"
        assert request.url.params["search"] == "spring"

    def test_list_rules_without_search(self, api_client, api_handler):
        api_handler.body = {"data": [], "total": 0}

        assert api_client.list_rules().data == []
        assert "search" not in api_handler.requests[-1].url.params

    def test_list_rules_error(self, api_client, api_handler):
        api_handler.status_code = 403
        api_handler.body = {"message": "This action is unauthorized."}

        with pytest.raises(ApiError, match="This action is unauthorized."):
            api_client.list_rules()

    def test_delete_rule(self, api_client, api_handler):
        api_handler.body = {"success": True, "message": "Promotion rule deleted"}

        response = api_client.delete_rule(3)

        assert response.message == "Promotion rule deleted"
        request = api_handler.requests[-1]
        assert request.method == "DELETE"
        assert request.url.path == "/api/admin/promotion-rules/3"

    def test_delete_rule_no_content(self, api_client, api_handler):
        api_handler.status_code = 204
        api_handler.raw_body = b""

        assert api_client.delete_rule(3).success is True

    def test_delete_missing_rule(self, api_client, api_handler):
        api_handler.status_code = 404
        api_handler.body = {"success": False, "message": "Promotion rule not found"}

        with pytest.raises(ApiError) as exc_info:
            api_client.delete_rule(99)

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Promotion rule not found"

    def test_evaluate_cart(self, api_client, api_handler):
        api_handler.body = {"total": 85.0, "discounts": [{"rule": "Spring Sale", "amount": 15.0}]}

        result = api_client.evaluate_cart()

        assert result["total"] == 85.0
        assert api_handler.requests[-1].url.path == "/api/evaluate"

    def test_evaluate_cart_error(self, api_client, api_handler):
        api_handler.status_code = 503
        api_handler.raw_body = b""

        with pytest.raises(ApiError, match="Failed to evaluate cart"):
            api_client.evaluate_cart()


# =============================================================================
# Client setup
# =============================================================================


class TestClientSetup:
    def test_bearer_prefix_not_duplicated(self):
        client = PromotionRulesClient(
            base_url="http://rules.test/api",
            token="Bearer abc",
            transport=httpx.MockTransport(lambda request: httpx.Response(200)),
        )
        try:
            assert client.get_auth_header() == {"Authorization": "Bearer abc"}
        finally:
            client.close()

    def test_no_token_no_header(self, api_handler):
        client = PromotionRulesClient(
            base_url="http://rules.test/api", token="", transport=httpx.MockTransport(api_handler)
        )
        api_handler.body = {"data": [], "total": 0}
        with client:
            client.list_rules()

        assert "Authorization" not in api_handler.requests[-1].headers
        assert client.client.is_closed

    def test_trailing_slash_in_base_url(self, api_handler):
        api_handler.body = {"data": [], "total": 0}
        with PromotionRulesClient(
            base_url="http://rules.test/api/", token="", transport=httpx.MockTransport(api_handler)
        ) as client:
            client.list_rules()

        assert api_handler.requests[-1].url == "http://rules.test/api/admin/promotion-rules"
