"""
Unit tests for access control node and action models.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import UnknownRuleTypeError
from service_access_control.app.rules.models import (
    AddRuleAction,
    ERC1155OwnerRule,
    ERC20TokenRule,
    ERC721TokenRule,
    GroupNode,
    LitActionRule,
    LogicalOperator,
    OperatorNode,
    PaywallRule,
    UpdateOperatorAction,
    create_group,
    create_operator,
    create_rule,
    dump_state,
    parse_action,
    parse_state,
    rule_from_mapping,
)


class TestCreateRule:
    """Test cases for the rule factory."""

    def test_create_erc20_rule_defaults(self):
        """Test ERC20 rule takes class defaults."""
        rule = create_rule("token", "ERC20")

        assert isinstance(rule, ERC20TokenRule)
        assert rule.type == "token"
        assert rule.subtype == "ERC20"
        assert rule.chain == ""
        assert rule.contract == ""
        assert rule.num_tokens == 1
        assert rule.id

    def test_create_rule_drops_undeclared_fields(self):
        """Test fields the subtype does not declare are dropped."""
        rule = create_rule("token", "ERC20", chain="base", token_id="7")

        assert "token_id" not in rule.model_dump()
        assert rule.chain == "base"

    def test_create_rule_keeps_given_id(self):
        """Test explicit rule id is used."""
        rule = create_rule("token", "ERC721", rule_id="my-rule", token_id="3")

        assert isinstance(rule, ERC721TokenRule)
        assert rule.id == "my-rule"
        assert rule.token_id == "3"

    def test_create_rule_ignores_none_values(self):
        """Test None values fall back to defaults."""
        rule = create_rule("token", "ERC1155", token_id=None, num_tokens=None)

        assert rule.token_id == ""
        assert rule.num_tokens == 1

    def test_create_owner_rule(self):
        """Test owner rule class selection."""
        rule = create_rule("owner", "ERC1155", token_id="TOKEN_PLACEHOLDER")

        assert isinstance(rule, ERC1155OwnerRule)
        assert rule.type == "owner"
        assert rule.is_rule is True

    def test_create_paywall_and_lit_action(self):
        """Test non-balance rule types."""
        paywall = create_rule("paywall", chain="base", token_id="5")
        lit_action = create_rule("litAction")

        assert isinstance(paywall, PaywallRule)
        assert paywall.token_id == "5"
        assert isinstance(lit_action, LitActionRule)

    def test_create_rule_generates_unique_ids(self):
        """Test generated ids do not collide."""
        ids = {create_rule("token", "ERC20").id for _ in range(50)}

        assert len(ids) == 50

    @pytest.mark.parametrize("rule_type,subtype", [
        ("nft", "ERC20"),
        ("token", "ERC404"),
        ("token", None),
        ("operator", None),
    ])
    def test_create_rule_unknown_discriminator(self, rule_type, subtype):
        """Test unknown type/subtype pairs raise."""
        with pytest.raises(UnknownRuleTypeError) as exc_info:
            create_rule(rule_type, subtype)

        assert exc_info.value.code == "UNKNOWN_RULE_TYPE"

    def test_rule_from_mapping(self):
        """Test building a rule from a partial mapping."""
        rule = rule_from_mapping({"type": "token", "subtype": "ERC721", "contract": "0xabc"})

        assert isinstance(rule, ERC721TokenRule)
        assert rule.contract == "0xabc"
        assert rule.token_id == ""


class TestNodes:
    """Test cases for node models."""

    def test_nodes_are_immutable(self):
        """Test nodes cannot be edited in place."""
        rule = create_rule("token", "ERC20")

        with pytest.raises(PydanticValidationError):
            rule.chain = "base"

    def test_operator_default_is_and(self):
        """Test operator nodes default to AND."""
        operator = create_operator()

        assert isinstance(operator, OperatorNode)
        assert operator.operator == LogicalOperator.AND
        assert operator.is_operator is True

    def test_group_holds_tuple(self):
        """Test group rules are stored as a tuple."""
        group = create_group([create_rule("token", "ERC20")])

        assert isinstance(group, GroupNode)
        assert isinstance(group.rules, tuple)
        assert group.is_group is True

    def test_parse_state_discriminates_nested_nodes(self):
        """Test nested node dicts parse into concrete classes."""
        state = parse_state([
            {"id": "lit", "type": "litAction"},
            {"id": "op", "type": "operator", "operator": "or"},
            {"id": "g", "type": "group", "rules": [
                {"id": "o", "type": "owner", "subtype": "ERC1155", "token_id": "1"},
                {"id": "t", "type": "token", "subtype": "ERC721", "contract": "0x1"},
            ]},
        ])

        assert isinstance(state, tuple)
        assert isinstance(state[0], LitActionRule)
        assert state[1].operator == LogicalOperator.OR
        assert isinstance(state[2].rules[0], ERC1155OwnerRule)
        assert isinstance(state[2].rules[1], ERC721TokenRule)

    def test_parse_state_rejects_unknown_type(self):
        """Test unknown node type fails to parse."""
        with pytest.raises(PydanticValidationError):
            parse_state([{"id": "x", "type": "mystery"}])

    def test_dump_state_is_json_compatible(self):
        """Test dumped state uses plain values."""
        state = (create_group([create_rule("token", "ERC20", rule_id="r")], group_id="g"),)

        dumped = dump_state(state)

        assert dumped == [{
            "id": "g",
            "type": "group",
            "rules": [{
                "id": "r",
                "type": "token",
                "subtype": "ERC20",
                "chain": "",
                "contract": "",
                "num_tokens": 1,
            }],
        }]
        assert parse_state(dumped) == state


class TestActions:
    """Test cases for reducer action models."""

    def test_parse_add_rule_action(self):
        """Test ADD_RULE action parsing."""
        action = parse_action({
            "type": "ADD_RULE",
            "group_id": "user-group",
            "rule": {"type": "token", "subtype": "ERC20"},
        })

        assert isinstance(action, AddRuleAction)
        assert action.group_id == "user-group"

    def test_parse_update_operator_action(self):
        """Test UPDATE_OPERATOR action parsing."""
        action = parse_action({"type": "UPDATE_OPERATOR", "operator_id": "op", "operator": "or"})

        assert isinstance(action, UpdateOperatorAction)
        assert action.operator == LogicalOperator.OR

    def test_parse_unknown_action(self):
        """Test unknown action type fails to parse."""
        with pytest.raises(PydanticValidationError):
            parse_action({"type": "RESET"})
