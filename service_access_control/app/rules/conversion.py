"""
Conversion between access control trees and the policy verifier's unified
condition format.

A condition list holds leaf checks, ``{"operator": "and"|"or"}`` markers and
nested lists for groups. The converter only shapes data; it never talks to
the verifier.
"""

import copy
from typing import Any, Dict, List, Optional

from shared.config import BaseConfig, get_settings
from shared.errors import ConditionFormatError, RuleValidationError
from shared.logging import get_logger

from .models import (
    AccessControlState,
    LitActionRule,
    LogicalOperator,
    NodeType,
    OperatorNode,
    PaywallRule,
    TokenStandard,
    create_group,
    create_rule,
    new_node_id,
)
from .reducer import cleanup
from .validation import validate_state

logger = get_logger("access_control.conversion")

USER_ADDRESS_PARAM = ":userAddress"
CURRENT_ACTION_IPFS_ID_PARAM = ":currentActionIpfsId"

HAS_PURCHASED_VIDEO_ABI = {
    "inputs": [
        {"type": "address", "name": "user"},
        {"type": "uint256", "name": "tokenId"},
    ],
    "name": "hasPurchasedVideo",
    "outputs": [{"type": "bool", "name": ""}],
    "stateMutability": "view",
    "type": "function",
}

Condition = Any


def _lit_action_condition(settings: BaseConfig) -> Dict[str, Any]:
    return {
        "conditionType": "evmBasic",
        "contractAddress": "",
        "standardContractType": "",
        "chain": settings.default_chain,
        "method": "",
        "parameters": [CURRENT_ACTION_IPFS_ID_PARAM],
        "returnValueTest": {
            "comparator": "=",
            "value": settings.action_ipfs_cid,
        },
    }


def _balance_of_condition(rule) -> Dict[str, Any]:
    if rule.subtype == TokenStandard.ERC20:
        parameters = [USER_ADDRESS_PARAM]
    else:
        parameters = [USER_ADDRESS_PARAM, rule.token_id or "0"]

    return {
        "conditionType": "evmBasic",
        "contractAddress": rule.contract,
        "standardContractType": rule.subtype,
        "method": "balanceOf",
        "parameters": parameters,
        "chain": rule.chain,
        "returnValueTest": {
            "comparator": ">=",
            "value": str(rule.num_tokens),
        },
    }


def _purchase_condition(rule: PaywallRule, settings: BaseConfig) -> Dict[str, Any]:
    return {
        "conditionType": "evmContract",
        "contractAddress": settings.purchase_manager_address,
        "functionName": "hasPurchasedVideo",
        "functionParams": [USER_ADDRESS_PARAM, rule.token_id],
        "functionAbi": copy.deepcopy(HAS_PURCHASED_VIDEO_ABI),
        "chain": rule.chain,
        "returnValueTest": {
            "key": "",
            "comparator": "=",
            "value": "true",
        },
    }


def _return_value_test(condition: Dict[str, Any]) -> Dict[str, Any]:
    """The condition's ``returnValueTest``; anything but an object counts as missing."""
    return_value = condition.get("returnValueTest")
    return return_value if isinstance(return_value, dict) else {}


def _is_operator_marker(condition: Condition) -> bool:
    return isinstance(condition, dict) and "operator" in condition


def _join(conditions: List[Condition]) -> List[Condition]:
    """Keep operator markers only where a condition precedes and follows them."""
    joined: List[Condition] = []
    pending: Optional[Condition] = None
    for condition in conditions:
        if _is_operator_marker(condition):
            if joined and pending is None:
                pending = condition
            continue
        if pending is not None:
            joined.append(pending)
            pending = None
        joined.append(condition)
    return joined


def _convert_node(node, settings: BaseConfig) -> Optional[Condition]:
    if node.type == NodeType.GROUP:
        converted = [_convert_node(child, settings) for child in node.rules]
        conditions = _join([c for c in converted if c is not None])
        return conditions or None

    if node.type == NodeType.LIT_ACTION:
        return _lit_action_condition(settings)

    if node.type in (NodeType.TOKEN, NodeType.OWNER):
        return _balance_of_condition(node)

    if node.type == NodeType.PAYWALL:
        return _purchase_condition(node, settings)

    if node.type == NodeType.OPERATOR:
        return {"operator": node.operator.value}

    return None


def to_wire_format(state: AccessControlState, settings: Optional[BaseConfig] = None) -> List[Condition]:
    """Serialize a tree to the verifier's condition list."""
    settings = settings or get_settings()
    converted = [_convert_node(node, settings) for node in state]
    return _join([c for c in converted if c is not None])


def _token_id_from_parameters(parameters: Any) -> Optional[str]:
    if isinstance(parameters, list) and len(parameters) > 1:
        return str(parameters[1])
    return None


def _leaf_to_rule(condition: Dict[str, Any]):
    return_value = _return_value_test(condition)
    chain = condition.get("chain") or ""

    if condition.get("parameters") == [CURRENT_ACTION_IPFS_ID_PARAM]:
        return LitActionRule(id=new_node_id())

    if condition.get("functionName") == "hasPurchasedVideo":
        return PaywallRule(
            id=new_node_id(),
            chain=chain,
            token_id=_token_id_from_parameters(condition.get("functionParams")) or "",
        )

    if condition.get("method") == "balanceOf":
        token_id = _token_id_from_parameters(condition.get("parameters"))
        subtype = condition.get("standardContractType")
        if subtype not in TokenStandard.__members__:
            subtype = TokenStandard.ERC20 if token_id is None else TokenStandard.ERC1155
        try:
            num_tokens = int(return_value.get("value", "0"))
        except (TypeError, ValueError):
            num_tokens = 0
        return create_rule(
            NodeType.TOKEN,
            subtype,
            chain=chain,
            contract=condition.get("contractAddress") or "",
            token_id=token_id,
            num_tokens=num_tokens,
        )

    return None


def _read_conditions(conditions: List[Condition]) -> List:
    nodes = []
    for condition in conditions:
        if isinstance(condition, list):
            rules = cleanup(_read_conditions(condition))
            if rules:
                nodes.append(create_group(rules))
        elif _is_operator_marker(condition):
            try:
                operator = LogicalOperator(condition["operator"])
            except ValueError:
                logger.warning("Skipping unknown operator", operator=condition["operator"])
                continue
            nodes.append(OperatorNode(id=new_node_id(), operator=operator))
        elif isinstance(condition, dict):
            rule = _leaf_to_rule(condition)
            if rule is None:
                logger.warning("Skipping unrecognised condition", condition_type=condition.get("conditionType"))
                continue
            nodes.append(rule)
        else:
            logger.warning("Skipping non-object condition", value_type=type(condition).__name__)
    return nodes


def from_wire_format(conditions: List[Condition]) -> AccessControlState:
    """
    Rebuild a tree from a condition list.

    Nested lists become groups, operator markers become operator nodes and
    leaf checks are mapped back to lit action, paywall or balance rules. The
    token subtype comes from ``standardContractType`` when present, otherwise
    from whether the check passes a token id. The result is cleaned up like
    any reducer output, and sub-lists with no usable condition are dropped.
    Ids are freshly generated; use ``anchors.reanchor`` to restore template
    anchors.
    """
    if not isinstance(conditions, list):
        raise ConditionFormatError("Access control conditions must be a list")
    return cleanup(_read_conditions(conditions))


def _is_content_address_check(condition: Dict[str, Any]) -> bool:
    return_value = _return_value_test(condition)
    return (
        condition.get("parameters") == [CURRENT_ACTION_IPFS_ID_PARAM]
        and bool(return_value.get("comparator"))
        and bool(return_value.get("value"))
    )


def _validate_condition(condition: Condition) -> bool:
    if isinstance(condition, list):
        return all(_validate_condition(item) for item in condition)

    if not isinstance(condition, dict):
        return False

    if "operator" in condition:
        return condition["operator"] in (LogicalOperator.AND.value, LogicalOperator.OR.value)

    if condition.get("conditionType") == "litAction" or _is_content_address_check(condition):
        return True

    return_value = _return_value_test(condition)
    has_test = bool(return_value.get("comparator")) and bool(return_value.get("value"))

    if condition.get("conditionType") == "evmBasic":
        return bool(
            condition.get("chain")
            and condition.get("method")
            and isinstance(condition.get("parameters"), list)
            and has_test
        )

    if condition.get("conditionType") == "evmContract":
        if not (condition.get("chain") and condition.get("contractAddress") and has_test):
            return False
        standard_call = (
            condition.get("standardContractType")
            and condition.get("method")
            and isinstance(condition.get("parameters"), list)
        )
        function_call = (
            condition.get("functionName")
            and isinstance(condition.get("functionParams"), list)
        )
        return bool(standard_call or function_call)

    return False


def validate_conditions(conditions: Any) -> bool:
    """Structural check of a condition list; never raises."""
    if not isinstance(conditions, list) or not conditions:
        return False
    return all(_validate_condition(condition) for condition in conditions)


def substitute_token_id(conditions: Any, token_id: str, placeholder: Optional[str] = None) -> Any:
    """
    Replace the token id placeholder with the minted token id.

    Every string equal to the placeholder is replaced, at any depth; the
    input is left untouched.
    """
    placeholder = placeholder or get_settings().token_placeholder

    if isinstance(conditions, list):
        return [substitute_token_id(item, token_id, placeholder) for item in conditions]
    if isinstance(conditions, dict):
        return {key: substitute_token_id(value, token_id, placeholder) for key, value in conditions.items()}
    if conditions == placeholder:
        return token_id
    return conditions


def build_playback_access(state: AccessControlState, settings: Optional[BaseConfig] = None) -> Dict[str, Any]:
    """
    Produce the playback access object stored in video metadata.

    Saving is gated by rule validation: a tree with invalid token rules
    raises ``RuleValidationError`` carrying one message per rule.
    """
    errors = validate_state(state)
    if errors:
        raise RuleValidationError(errors)

    return {
        "acl": to_wire_format(state, settings),
        "type": "lit",
    }
