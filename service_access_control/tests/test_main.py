"""
Unit tests for Access Control main service.
"""

import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_access_control.tests.factories import TEST_CONTRACT, AccessControlDataFactory
from service_access_control.app.main import AccessControlService, create_app
from service_access_control.app.rules.models import dump_state


class TestAccessControlService:
    """Test cases for AccessControlService."""

    @pytest.fixture
    def access_control_service(self):
        """Create AccessControlService instance."""
        return AccessControlService()

    @pytest.fixture
    def app(self):
        """Create FastAPI app instance."""
        return create_app()

    @pytest.fixture
    def client(self, app):
        """Create test client."""
        return TestClient(app)

    @pytest.fixture
    def template_state(self, client):
        """Template tree as returned by the service."""
        return client.get("/access-control/template").json()["state"]

    @pytest.fixture
    def token_group_state(self):
        """Single group with an ERC20 and an ERC1155 rule."""
        group = {
            "id": "g",
            "type": "group",
            "rules": [
                {"id": "r1", "type": "token", "subtype": "ERC20", "chain": "base",
                 "contract": TEST_CONTRACT, "num_tokens": 5},
                {"id": "op", "type": "operator", "operator": "or"},
                {"id": "r2", "type": "token", "subtype": "ERC1155", "chain": "base",
                 "contract": TEST_CONTRACT, "token_id": "3", "num_tokens": 1},
            ],
        }
        return [group]

    def test_service_initialization(self, access_control_service):
        """Test service initialization."""
        assert access_control_service.service_name == "access_control"
        assert access_control_service.port == 8020
        assert access_control_service.app is not None
        assert access_control_service.metrics.get_metric("access_control_actions_total") is not None

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["service"] == "access_control"
        assert "rule_builder" in data["capabilities"]

    def test_health_endpoint(self, client):
        """Test health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["service"] == "access_control"
        assert data["status"] == "ok"
        assert "x-request-id" in response.headers

    def test_metrics_endpoint(self, client, template_state):
        """Test Prometheus metrics exposition."""
        client.post("/access-control/conditions", json={"state": template_state})

        response = client.get("/metrics")
        assert response.status_code == 200
        assert "access_control_conversions_total" in response.text

    def test_template_endpoint(self, template_state):
        """Test template endpoint returns the anchored tree."""
        assert [node["type"] for node in template_state] == ["litAction", "operator", "group"]
        assert template_state[2]["id"] == "inner-group"
        assert template_state[2]["rules"][-1]["id"] == "user-group"

    def test_reduce_from_template(self, client):
        """Test reducer actions applied to the default template."""
        response = client.post("/access-control/reduce", json={
            "actions": [
                {"type": "REMOVE_GROUP", "group_id": "erc721-group"},
                {"type": "UPDATE_OPERATOR", "operator_id": "erc20-erc721-operator", "operator": "and"},
            ]
        })
        assert response.status_code == 200

        user_group = response.json()["state"][2]["rules"][-1]
        assert [node["id"] for node in user_group["rules"]] == [
            "erc20-group", "erc20-erc721-operator", "erc1155-group"
        ]
        assert user_group["rules"][1]["operator"] == "and"

    def test_reduce_given_state(self, client, token_group_state):
        """Test reducer over a posted tree."""
        response = client.post("/access-control/reduce", json={
            "state": token_group_state,
            "actions": [{"type": "REMOVE_RULE", "rule_id": "r1"}],
        })
        assert response.status_code == 200

        rules = response.json()["state"][0]["rules"]
        assert [rule["id"] for rule in rules] == ["r2"]

    def test_reduce_unknown_rule_type(self, client):
        """Test unknown rule discriminators are rejected."""
        response = client.post("/access-control/reduce", json={
            "actions": [{"type": "ADD_RULE", "group_id": "erc20-group", "rule": {"type": "nft"}}]
        })
        assert response.status_code == 400
        assert response.json()["code"] == "UNKNOWN_RULE_TYPE"

    def test_reduce_wrongly_typed_field(self, client):
        """Test rule fields of the wrong type are rejected."""
        response = client.post("/access-control/reduce", json={
            "actions": [{"type": "UPDATE_RULE", "rule_id": "erc20-rule", "updates": {"num_tokens": "many"}}]
        })
        assert response.status_code == 400

        data = response.json()
        assert data["code"] == "VALIDATION_ERROR"
        assert data["details"]["errors"][0]["loc"] == ["num_tokens"]

    def test_reduce_unknown_action(self, client):
        """Test unknown action types fail request validation."""
        response = client.post("/access-control/reduce", json={"actions": [{"type": "RESET"}]})
        assert response.status_code == 422
        assert response.json()["code"] == "REQUEST_VALIDATION_ERROR"

    def test_conditions_round_trip(self, client, token_group_state):
        """Test tree to conditions and back."""
        response = client.post("/access-control/conditions", json={"state": token_group_state})
        assert response.status_code == 200

        data = response.json()
        assert data["valid"] is True
        assert data["conditions"][0][0]["parameters"] == [":userAddress"]
        assert data["conditions"][0][2]["parameters"] == [":userAddress", "3"]

        response = client.post("/access-control/state", json={"conditions": data["conditions"]})
        assert response.status_code == 200

        rules = response.json()["state"][0]["rules"]
        assert [rule.get("subtype") for rule in rules] == ["ERC20", None, "ERC1155"]
        assert rules[0]["num_tokens"] == 5
        assert rules[1]["operator"] == "or"

    def test_state_from_template_conditions_is_anchored(self, client, template_state):
        """Test anchors are restored from template conditions."""
        conditions = client.post("/access-control/conditions", json={"state": template_state}).json()["conditions"]

        response = client.post("/access-control/state", json={"conditions": conditions})
        state = response.json()["state"]

        assert state[0]["id"] == "lit-action-rule"
        assert state[2]["id"] == "inner-group"
        assert state[2]["rules"][0]["id"] == "owner-rule"

        response = client.post("/access-control/state", json={"conditions": conditions, "reanchor": False})
        assert response.json()["state"][2]["id"] != "inner-group"

    def test_validate_conditions_endpoint(self, client):
        """Test structural condition check."""
        response = client.post("/access-control/conditions/validate", json={"conditions": []})
        assert response.status_code == 200
        assert response.json() == {"valid": False}

    def test_malformed_return_value_test(self, client):
        """Test a non-object returnValueTest is invalid rather than an error."""
        conditions = [{
            "conditionType": "evmBasic",
            "contractAddress": TEST_CONTRACT,
            "standardContractType": "ERC20",
            "method": "balanceOf",
            "parameters": [":userAddress"],
            "chain": "base",
            "returnValueTest": "oops",
        }]

        response = client.post("/access-control/conditions/validate", json={"conditions": conditions})
        assert response.status_code == 200
        assert response.json() == {"valid": False}

        response = client.post("/access-control/state", json={"conditions": conditions})
        assert response.status_code == 200
        assert response.json()["state"][0]["num_tokens"] == 0

    def test_token_id_substitution(self, client, template_state):
        """Test minted token id replaces the placeholder."""
        conditions = client.post("/access-control/conditions", json={"state": template_state}).json()["conditions"]

        response = client.post("/access-control/conditions/token-id", json={
            "conditions": conditions,
            "token_id": "42",
        })
        assert response.status_code == 200

        substituted = response.json()["conditions"]
        assert substituted[2][0]["parameters"] == [":userAddress", "42"]
        assert "TOKEN_PLACEHOLDER" not in response.text

    def test_token_id_required(self, client):
        """Test empty token ids are rejected."""
        response = client.post("/access-control/conditions/token-id", json={"conditions": [], "token_id": ""})
        assert response.status_code == 422

    def test_rules_validate_endpoint(self, client, token_group_state):
        """Test rule validation reports errors by id."""
        token_group_state[0]["rules"][2]["token_id"] = ""

        response = client.post("/access-control/rules/validate", json={"state": token_group_state})
        assert response.status_code == 200
        assert response.json() == {"valid": False, "errors": {"r2": "Token ID is required"}}

    def test_playback_access(self, client, template_state):
        """Test playback access for a valid tree."""
        response = client.post("/access-control/playback-access", json={"state": template_state, "video_id": "video-1"})
        assert response.status_code == 200

        data = response.json()
        assert data["type"] == "lit"
        assert data["acl"][1] == {"operator": "and"}

    def test_playback_access_invalid_rules(self, client, token_group_state):
        """Test invalid rules block playback access."""
        token_group_state[0]["rules"][0]["chain"] = ""

        response = client.post("/access-control/playback-access", json={"state": token_group_state})
        assert response.status_code == 400

        data = response.json()
        assert data["code"] == "RULE_VALIDATION_ERROR"
        assert data["details"]["errors"] == {"r1": "Chain is required"}

    def test_unlock_options_from_state(self, client):
        """Test unlock options from a tree and price."""
        state = AccessControlDataFactory.create_anchored_state([
            AccessControlDataFactory.create_token_group("ERC20", group_id="a"),
        ])

        response = client.post("/access-control/unlock-options", json={
            "state": dump_state(state),
            "price": AccessControlDataFactory.create_price("1000000"),
        })
        assert response.status_code == 200

        options = response.json()["options"]
        assert [option["type"] for option in options] == ["token", "payment"]
        assert options[1]["price"] == 1000000

    def test_unlock_options_from_conditions(self, client, template_state):
        """Test unlock options from stored conditions."""
        conditions = client.post("/access-control/conditions", json={"state": template_state}).json()["conditions"]

        response = client.post("/access-control/unlock-options", json={"conditions": conditions})
        assert response.status_code == 200

        options = response.json()["options"]
        assert [option["type"] for option in options] == ["token", "token", "token"]

    def test_unlock_options_requires_policy(self, client):
        """Test state or conditions must be given."""
        response = client.post("/access-control/unlock-options", json={"price": {"amount": "1"}})
        assert response.status_code == 422
