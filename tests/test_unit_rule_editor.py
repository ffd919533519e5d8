"""
Tests for the rule editor session.
"""

import pytest
from pydantic import ValidationError

from promo_builder.api.schemas.promotion_rule import RuleMetadata
from promo_builder.core.errors import (
    ApiError,
    EmptyActionsError,
    EmptyConditionsError,
    SocketMismatchError,
)
from promo_builder.core.observability import (
    get_request_id,
    reset_correlation_id,
    set_correlation_id,
)
from promo_builder.graph.nodes import LogicalNode
from promo_builder.graph.rule_graph import RuleGraph
from promo_builder.services.rule_editor import RuleEditorSession


class TestEditing:
    def test_ids_are_unique_per_session(self):
        session = RuleEditorSession()

        condition = session.add_condition("product_id")
        action = session.add_action("percentage_discount")
        logical = session.add_logical("and")

        assert [condition.id, action.id, logical.id] == [
            "product-id-1",
            "percentage-discount-2",
            "and-3",
        ]

    def test_new_nodes_get_defaults(self):
        session = RuleEditorSession()

        assert session.add_condition("product_id").value == 1
        assert session.add_action("percentage_discount").value == 10
        assert session.add_action("free_units").value == 1

    def test_ids_skip_nodes_already_in_graph(self):
        graph = RuleGraph()
        graph.add_node(LogicalNode(id="or-1", subtype="or"))
        session = RuleEditorSession(graph)

        assert session.add_logical("or").id == "or-2"

    def test_set_operator_and_value(self):
        session = RuleEditorSession()
        node = session.add_condition("quantity", value=1)

        session.set_operator(node.id, "greater_than")
        updated = session.set_value(node.id, 4)

        assert updated.operator.value == "greater_than"
        assert updated.value == 4
        assert session.graph.get_node(node.id) is updated

    def test_invalid_value_rejected(self):
        session = RuleEditorSession()
        node = session.add_action("percentage_discount", value=15)

        with pytest.raises(ValidationError):
            session.set_value(node.id, 150)
        assert session.graph.get_node(node.id).value == 15

    def test_remove_node(self):
        session = RuleEditorSession()
        node = session.add_condition("category", value=2)

        session.remove_node(node.id)

        assert len(session.graph) == 0


class TestConnect:
    def test_fills_logical_inputs_in_order(self):
        session = RuleEditorSession()
        first = session.add_condition("product_id", value=7)
        second = session.add_condition("customer_tier", value="gold")
        third = session.add_condition("category", value=1)
        gate = session.add_logical("or")

        assert session.connect(first.id, gate.id).target_input == "a"
        assert session.connect(second.id, gate.id).target_input == "b"
        with pytest.raises(SocketMismatchError, match="no free input"):
            session.connect(third.id, gate.id)

    def test_uses_source_output(self):
        session = RuleEditorSession()
        gate = session.add_logical("and")
        action = session.add_action("free_units")

        connection = session.connect(gate.id, action.id)

        assert connection.source_output == "result"
        assert connection.target_input == "condition"

    def test_action_has_no_output(self):
        session = RuleEditorSession()
        action = session.add_action("free_units")
        gate = session.add_logical("and")

        with pytest.raises(SocketMismatchError, match="no output"):
            session.connect(action.id, gate.id)

    def test_explicit_input(self):
        session = RuleEditorSession()
        condition = session.add_condition("product_id")
        gate = session.add_logical("and")

        assert session.connect(condition.id, gate.id, target_input="b").target_input == "b"


class TestSubmit:
    def test_submit_posts_compiled_rule(self, api_client, api_handler):
        session = RuleEditorSession()
        session.add_condition("product_id", value=42)
        session.add_action("percentage_discount", value=15)

        response = session.submit(api_client, RuleMetadata(name="Spring Sale"))

        assert response.success is True
        body = api_handler.last_json
        assert body["name"] == "Spring Sale"
        assert body["conditions"] == [
            {"id": "product-id-1", "operator": "equals", "type": "product_id", "value": 42}
        ]
        assert body["actions"] == [
            {"id": "percentage-discount-2", "type": "percentage_discount", "value": 15}
        ]

    def test_incomplete_rule_is_not_sent(self, api_client, api_handler):
        session = RuleEditorSession()
        session.add_condition("product_id", value=42)

        with pytest.raises(EmptyActionsError):
            session.submit(api_client)
        assert api_handler.requests == []

    def test_empty_graph_reports_missing_conditions(self, api_client, api_handler):
        with pytest.raises(EmptyConditionsError):
            RuleEditorSession().submit(api_client)
        assert api_handler.requests == []

    def test_rejection_surfaces_server_message(self, api_client, api_handler):
        api_handler.status_code = 422
        api_handler.body = {"success": False, "message": "The name field is required."}
        session = RuleEditorSession()
        session.add_condition("product_id")
        session.add_action("free_units")

        with pytest.raises(ApiError, match="The name field is required."):
            session.submit(api_client)
        assert len(api_handler.requests) == 1

    def test_graph_stays_editable_after_submit(self, api_client, api_handler):
        session = RuleEditorSession()
        condition = session.add_condition("product_id", value=42)
        session.add_action("free_units")
        session.submit(api_client)

        session.set_value(condition.id, 43)
        session.submit(api_client)

        assert len(api_handler.requests) == 2
        assert api_handler.last_json["conditions"][0]["value"] == 43

    def test_request_id_scoped_to_submission(self, api_client, api_handler):
        session = RuleEditorSession()
        session.add_condition("product_id")
        session.add_action("free_units")

        session.submit(api_client)
        submitted_id = api_handler.requests[-1].headers["X-Request-ID"]
        api_handler.body = {"data": [], "total": 0}
        api_client.list_rules()

        assert submitted_id
        assert get_request_id() == ""
        assert api_handler.requests[-1].headers["X-Request-ID"] != submitted_id

    def test_request_id_reset_after_failed_submission(self, api_client):
        with pytest.raises(EmptyConditionsError):
            RuleEditorSession().submit(api_client)

        assert get_request_id() == ""

    def test_caller_request_id_is_kept(self, api_client, api_handler):
        token = set_correlation_id("caller-req-1")
        try:
            session = RuleEditorSession()
            session.add_condition("product_id")
            session.add_action("free_units")
            session.submit(api_client)

            assert api_handler.requests[-1].headers["X-Request-ID"] == "caller-req-1"
            assert get_request_id() == "caller-req-1"
        finally:
            reset_correlation_id(token)
