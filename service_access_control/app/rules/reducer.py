"""
Tree mutation engine.

``reduce_state`` is a pure reducer over ``(state, action) -> state``. Every
update is copy-on-write: sequences and groups on the path to the change are
rebuilt, everything else is shared with the previous state. After each
action the cleanup pass restores the operator invariants:

- no operator first or last in a sequence,
- no two adjacent operators,
- exactly one operator between two adjacent groups.

Actions that reference an unknown id leave the state unchanged.
"""

from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from shared.logging import get_logger

from .models import (
    AccessControlState,
    AddGroupAction,
    AddRuleAction,
    GroupNode,
    NodeType,
    UpdateOperatorAction,
    UpdateRuleAction,
    create_group,
    create_operator,
    create_rule,
    parse_action,
    rule_from_mapping,
)
from .template import default_template

logger = get_logger("access_control.reducer")

Path = List[int]


def _is_operator(node) -> bool:
    return node.type == NodeType.OPERATOR


def _is_group(node) -> bool:
    return node.type == NodeType.GROUP


def _find_path(nodes: Sequence, predicate: Callable[[Any], bool]) -> Optional[Path]:
    """Index path to the first node matching ``predicate``, depth first."""
    for index, node in enumerate(nodes):
        if predicate(node):
            return [index]
        if _is_group(node):
            sub_path = _find_path(node.rules, predicate)
            if sub_path is not None:
                return [index] + sub_path
    return None


def _update_sequence(nodes: Tuple, container_path: Sequence[int],
                     update: Callable[[Tuple], Tuple]) -> Tuple:
    """Rebuild the sequence at ``container_path`` (group indices) via ``update``."""
    if not container_path:
        return update(tuple(nodes))

    head, rest = container_path[0], container_path[1:]
    group = nodes[head]
    new_group = group.model_copy(update={"rules": _update_sequence(group.rules, rest, update)})
    return nodes[:head] + (new_group,) + nodes[head + 1:]


def _remove_with_operator(nodes: Tuple, index: int) -> Tuple:
    """Remove ``nodes[index]`` together with one adjacent operator."""
    last = len(nodes) - 1
    drop = {index}

    if index == 0:
        if last >= 1 and _is_operator(nodes[1]):
            drop.add(1)
    elif index == last:
        if _is_operator(nodes[index - 1]):
            drop.add(index - 1)
    elif _is_operator(nodes[index + 1]):
        drop.add(index + 1)
    elif _is_operator(nodes[index - 1]):
        drop.add(index - 1)

    return tuple(node for i, node in enumerate(nodes) if i not in drop)


def _cleanup_sequence(nodes: Tuple) -> Tuple:
    cleaned = []
    for node in nodes:
        if _is_group(node):
            rules = _cleanup_sequence(node.rules)
            if rules != node.rules:
                node = node.model_copy(update={"rules": rules})
        cleaned.append(node)

    start, end = 0, len(cleaned)
    while start < end and _is_operator(cleaned[start]):
        start += 1
    while end > start and _is_operator(cleaned[end - 1]):
        end -= 1

    result = []
    for node in cleaned[start:end]:
        if result:
            previous = result[-1]
            if _is_operator(previous) and _is_operator(node):
                continue
            if _is_group(previous) and _is_group(node):
                result.append(create_operator())
        result.append(node)

    return tuple(result)


def cleanup(state: AccessControlState) -> AccessControlState:
    """Restore operator invariants in every sequence of the tree."""
    return _cleanup_sequence(tuple(state))


def _not_found(action, target_id: str) -> None:
    logger.debug("Access control action target not found", action=action.type, target_id=target_id)


def _add_group(state: Tuple, action: AddGroupAction) -> Tuple:
    additions: Tuple = (create_group(),)
    if state and _is_group(state[-1]):
        additions = (create_operator(),) + additions
    return state + additions


def _add_rule(state: Tuple, action: AddRuleAction) -> Tuple:
    path = _find_path(state, lambda node: _is_group(node) and node.id == action.group_id)
    if path is None:
        _not_found(action, action.group_id)
        return state

    rule = rule_from_mapping(action.rule)

    def append_rule(rules: Tuple) -> Tuple:
        if rules and not _is_operator(rules[-1]):
            return rules + (create_operator(), rule)
        return rules + (rule,)

    return _update_sequence(state, path, append_rule)


def _remove(state: Tuple, action, target_id: str, predicate: Callable[[Any], bool]) -> Tuple:
    path = _find_path(state, lambda node: predicate(node) and node.id == target_id)
    if path is None:
        _not_found(action, target_id)
        return state

    index = path[-1]
    return _update_sequence(state, path[:-1], lambda nodes: _remove_with_operator(nodes, index))


def _replace(state: Tuple, path: Path, node) -> Tuple:
    index = path[-1]
    return _update_sequence(state, path[:-1], lambda nodes: nodes[:index] + (node,) + nodes[index + 1:])


def _update_rule(state: Tuple, action: UpdateRuleAction) -> Tuple:
    path = _find_path(state, lambda node: node.is_rule and node.id == action.rule_id)
    if path is None:
        _not_found(action, action.rule_id)
        return state

    existing = _node_at(state, path)
    merged = {**existing.model_dump(), **action.updates}
    # Re-running the factory keeps the field shape consistent with the subtype
    updated = create_rule(merged.pop("type"), merged.pop("subtype", None), rule_id=existing.id, **merged)
    return _replace(state, path, updated)


def _update_operator(state: Tuple, action: UpdateOperatorAction) -> Tuple:
    path = _find_path(state, lambda node: _is_operator(node) and node.id == action.operator_id)
    if path is None:
        _not_found(action, action.operator_id)
        return state

    existing = _node_at(state, path)
    return _replace(state, path, existing.model_copy(update={"operator": action.operator}))


def _node_at(nodes: Sequence, path: Path):
    node = nodes[path[0]]
    for index in path[1:]:
        node = node.rules[index]
    return node


_HANDLERS = {
    "ADD_GROUP": _add_group,
    "ADD_RULE": _add_rule,
    "REMOVE_GROUP": lambda state, action: _remove(state, action, action.group_id, _is_group),
    "REMOVE_RULE": lambda state, action: _remove(state, action, action.rule_id, lambda node: node.is_rule),
    "UPDATE_RULE": _update_rule,
    "UPDATE_OPERATOR": _update_operator,
}


def reduce_state(state: AccessControlState, action: Union[Mapping[str, Any], Any]) -> AccessControlState:
    """Apply one action and return the cleaned-up new state."""
    if isinstance(action, Mapping):
        action = parse_action(action)

    handler = _HANDLERS[action.type]
    return cleanup(handler(tuple(state), action))


def apply_actions(state: AccessControlState, actions: Iterable) -> AccessControlState:
    """Apply actions strictly in dispatch order."""
    for action in actions:
        state = reduce_state(state, action)
    return state


class AccessControlBuilder:
    """Holds the tree a creator is editing and applies dispatched actions."""

    def __init__(self, state: Optional[AccessControlState] = None):
        if state is None:
            state = default_template()
        self.state: AccessControlState = tuple(state)
        self.logger = get_logger("access_control.builder")

    def dispatch(self, action) -> AccessControlState:
        """Apply an action to the current state."""
        if isinstance(action, Mapping):
            action = parse_action(action)
        self.logger.debug("Dispatching action", action=action.type)
        self.state = reduce_state(self.state, action)
        return self.state

    def find_group(self, group_id: str) -> Optional[GroupNode]:
        path = _find_path(self.state, lambda node: _is_group(node) and node.id == group_id)
        return _node_at(self.state, path) if path is not None else None
