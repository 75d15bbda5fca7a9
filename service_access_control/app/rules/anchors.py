"""
Well-known node ids of the application template.

The template's inner group holds the owner, paywall and user branches; the
user group nested inside it is the only subtree creators edit freely. Code
outside this module refers to these anchors through the helpers below.
"""

from typing import Optional, Sequence

from shared.logging import get_logger

from .models import AccessControlState, GroupNode, NodeType, create_rule

LIT_ACTION_RULE_ID = "lit-action-rule"
OUTER_OPERATOR_ID = "outer-operator"
INNER_GROUP_ID = "inner-group"
OWNER_RULE_ID = "owner-rule"
PAYWALL_RULE_ID = "paywall-rule"
USER_GROUP_ID = "user-group"

logger = get_logger("access_control.anchors")


def _find_child_group(nodes: Sequence, group_id: str) -> Optional[GroupNode]:
    for node in nodes:
        if node.type == NodeType.GROUP and node.id == group_id:
            return node
    return None


def find_inner_group(state: AccessControlState) -> Optional[GroupNode]:
    """Top-level group holding the owner/paywall/user branches."""
    return _find_child_group(state, INNER_GROUP_ID)


def find_user_group(state: AccessControlState) -> Optional[GroupNode]:
    """User-editable group inside the inner group."""
    inner = find_inner_group(state)
    if inner is None:
        return None
    return _find_child_group(inner.rules, USER_GROUP_ID)


_OUTER_SHAPE = (NodeType.LIT_ACTION, NodeType.OPERATOR, NodeType.GROUP)
_INNER_SHAPE = (
    (NodeType.TOKEN, NodeType.OWNER),
    (NodeType.OPERATOR,),
    (NodeType.PAYWALL,),
    (NodeType.OPERATOR,),
    (NodeType.GROUP,),
)


def _has_template_shape(nodes: Sequence) -> bool:
    """``[litAction, op, [balance, op, paywall, op, [...]]]``"""
    if tuple(node.type for node in nodes) != _OUTER_SHAPE:
        return False
    inner = nodes[2].rules
    return len(inner) == len(_INNER_SHAPE) and all(
        node.type in allowed for node, allowed in zip(inner, _INNER_SHAPE)
    )


def _reanchor_inner(group: GroupNode) -> GroupNode:
    owner, owner_paywall, paywall, paywall_user, user_group = group.rules

    # The inner group's balance check is the owner rule
    fields = owner.model_dump(exclude={"id", "type", "subtype"})
    owner = create_rule(NodeType.OWNER, owner.subtype, rule_id=OWNER_RULE_ID, **fields)

    rules = (
        owner,
        owner_paywall,
        paywall.model_copy(update={"id": PAYWALL_RULE_ID}),
        paywall_user,
        user_group.model_copy(update={"id": USER_GROUP_ID}),
    )
    return group.model_copy(update={"id": INNER_GROUP_ID, "rules": rules})


def reanchor(state: AccessControlState) -> AccessControlState:
    """
    Restore template anchor ids on a tree rebuilt from wire format.

    Trees decoded from conditions carry fresh ids, so the anchors are found
    by position instead. Only a tree with exactly the template's shape,
    ``[litAction, op, [balance, op, paywall, op, [...]]]``, is reanchored;
    trees that already carry anchors, or have any other shape, are returned
    unchanged.
    """
    if find_inner_group(state) is not None:
        return state

    if not _has_template_shape(state):
        logger.debug("Tree does not have the template shape, leaving anchors unset")
        return state

    lit_action, outer_operator, inner_group = state
    return (
        lit_action.model_copy(update={"id": LIT_ACTION_RULE_ID}),
        outer_operator.model_copy(update={"id": OUTER_OPERATOR_ID}),
        _reanchor_inner(inner_group),
    )
