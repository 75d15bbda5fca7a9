"""
Node and action models for the access control rule engine.

An access control tree is an ordered sequence of nodes. Rule nodes describe a
single condition, operator nodes join two siblings, and group nodes nest a
sub-sequence. Nodes are immutable; the reducer builds new trees instead of
editing existing ones.
"""

import uuid
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Literal, Mapping, Optional, Tuple, Union, overload

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from shared.errors import UnknownRuleTypeError


class NodeType(str, Enum):
    """Node discriminators."""
    TOKEN = "token"
    OWNER = "owner"
    PAYWALL = "paywall"
    LIT_ACTION = "litAction"
    OPERATOR = "operator"
    GROUP = "group"


class TokenStandard(str, Enum):
    """Token standards a balance rule can check."""
    ERC20 = "ERC20"
    ERC721 = "ERC721"
    ERC1155 = "ERC1155"


class LogicalOperator(str, Enum):
    """Boolean combinators between two siblings."""
    AND = "and"
    OR = "or"


RULE_TYPES = (NodeType.TOKEN, NodeType.OWNER, NodeType.PAYWALL, NodeType.LIT_ACTION)
BALANCE_RULE_TYPES = (NodeType.TOKEN, NodeType.OWNER)


def new_node_id() -> str:
    return str(uuid.uuid4())


class BaseNode(BaseModel):
    """Fields shared by every node."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., description="Unique node identifier")

    @property
    def is_rule(self) -> bool:
        return self.type in RULE_TYPES

    @property
    def is_operator(self) -> bool:
        return self.type == NodeType.OPERATOR

    @property
    def is_group(self) -> bool:
        return self.type == NodeType.GROUP


# Balance rules. Field values are deliberately unconstrained so that a rule
# being edited can hold invalid input; see validation.py for the schemas.

class ERC20TokenRule(BaseNode):
    type: Literal["token"] = "token"
    subtype: Literal["ERC20"] = "ERC20"
    chain: str = ""
    contract: str = ""
    num_tokens: int = 1


class ERC721TokenRule(BaseNode):
    type: Literal["token"] = "token"
    subtype: Literal["ERC721"] = "ERC721"
    chain: str = ""
    contract: str = ""
    token_id: Optional[str] = ""
    num_tokens: int = 1


class ERC1155TokenRule(BaseNode):
    type: Literal["token"] = "token"
    subtype: Literal["ERC1155"] = "ERC1155"
    chain: str = ""
    contract: str = ""
    token_id: str = ""
    num_tokens: int = 1


class ERC20OwnerRule(ERC20TokenRule):
    """Ownership of the platform's own contract, ERC20 flavour."""
    type: Literal["owner"] = "owner"


class ERC721OwnerRule(ERC721TokenRule):
    type: Literal["owner"] = "owner"


class ERC1155OwnerRule(ERC1155TokenRule):
    type: Literal["owner"] = "owner"


class PaywallRule(BaseNode):
    """Satisfied when the wallet has purchased the content on chain."""
    type: Literal["paywall"] = "paywall"
    chain: str = ""
    token_id: str = ""


class LitActionRule(BaseNode):
    """Only satisfiable inside the one authorized execution environment."""
    type: Literal["litAction"] = "litAction"


class OperatorNode(BaseNode):
    type: Literal["operator"] = "operator"
    operator: LogicalOperator = LogicalOperator.AND


class GroupNode(BaseNode):
    type: Literal["group"] = "group"
    rules: Tuple["Node", ...] = ()


TokenRule = Annotated[
    Union[ERC20TokenRule, ERC721TokenRule, ERC1155TokenRule],
    Field(discriminator="subtype"),
]
OwnerRule = Annotated[
    Union[ERC20OwnerRule, ERC721OwnerRule, ERC1155OwnerRule],
    Field(discriminator="subtype"),
]
BalanceRule = Union[
    ERC20TokenRule, ERC721TokenRule, ERC1155TokenRule,
    ERC20OwnerRule, ERC721OwnerRule, ERC1155OwnerRule,
]
RuleNode = Union[BalanceRule, PaywallRule, LitActionRule]

Node = Annotated[
    Union[TokenRule, OwnerRule, PaywallRule, LitActionRule, OperatorNode, GroupNode],
    Field(discriminator="type"),
]

GroupNode.model_rebuild()

AccessControlState = Tuple[Node, ...]

_state_adapter: TypeAdapter = TypeAdapter(AccessControlState)
_node_adapter: TypeAdapter = TypeAdapter(Node)


_BALANCE_RULE_CLASSES = {
    (NodeType.TOKEN, TokenStandard.ERC20): ERC20TokenRule,
    (NodeType.TOKEN, TokenStandard.ERC721): ERC721TokenRule,
    (NodeType.TOKEN, TokenStandard.ERC1155): ERC1155TokenRule,
    (NodeType.OWNER, TokenStandard.ERC20): ERC20OwnerRule,
    (NodeType.OWNER, TokenStandard.ERC721): ERC721OwnerRule,
    (NodeType.OWNER, TokenStandard.ERC1155): ERC1155OwnerRule,
}


@overload
def create_rule(rule_type: Literal["token"], subtype: Literal["ERC20"], *,
                rule_id: Optional[str] = ..., **fields: Any) -> ERC20TokenRule: ...
@overload
def create_rule(rule_type: Literal["token"], subtype: Literal["ERC721"], *,
                rule_id: Optional[str] = ..., **fields: Any) -> ERC721TokenRule: ...
@overload
def create_rule(rule_type: Literal["token"], subtype: Literal["ERC1155"], *,
                rule_id: Optional[str] = ..., **fields: Any) -> ERC1155TokenRule: ...
@overload
def create_rule(rule_type: Literal["owner"], subtype: Literal["ERC20"], *,
                rule_id: Optional[str] = ..., **fields: Any) -> ERC20OwnerRule: ...
@overload
def create_rule(rule_type: Literal["owner"], subtype: Literal["ERC721"], *,
                rule_id: Optional[str] = ..., **fields: Any) -> ERC721OwnerRule: ...
@overload
def create_rule(rule_type: Literal["owner"], subtype: Literal["ERC1155"], *,
                rule_id: Optional[str] = ..., **fields: Any) -> ERC1155OwnerRule: ...
@overload
def create_rule(rule_type: Literal["paywall"], subtype: None = ..., *,
                rule_id: Optional[str] = ..., **fields: Any) -> PaywallRule: ...
@overload
def create_rule(rule_type: Literal["litAction"], subtype: None = ..., *,
                rule_id: Optional[str] = ..., **fields: Any) -> LitActionRule: ...
@overload
def create_rule(rule_type: str, subtype: Optional[str] = ..., *,
                rule_id: Optional[str] = ..., **fields: Any) -> RuleNode: ...


def create_rule(rule_type, subtype=None, *, rule_id=None, **fields):
    """
    Build a fully-formed rule node from its discriminators and fields.

    The concrete class is picked from ``rule_type`` (and ``subtype`` for
    balance rules). Fields the chosen class does not declare are dropped, and
    missing ones take the class defaults, so switching a rule between
    subtypes always yields a consistent shape. A fresh id is generated unless
    ``rule_id`` is given.
    """
    fields = {
        name: value for name, value in fields.items()
        if value is not None and name not in ("id", "type", "subtype")
    }
    node_id = rule_id or new_node_id()

    try:
        node_type = NodeType(rule_type)
    except ValueError:
        raise UnknownRuleTypeError(rule_type, subtype) from None

    if node_type in BALANCE_RULE_TYPES:
        try:
            standard = TokenStandard(subtype)
        except ValueError:
            raise UnknownRuleTypeError(rule_type, subtype) from None
        return _BALANCE_RULE_CLASSES[(node_type, standard)](id=node_id, **fields)

    if node_type == NodeType.PAYWALL:
        return PaywallRule(id=node_id, **fields)

    if node_type == NodeType.LIT_ACTION:
        return LitActionRule(id=node_id)

    raise UnknownRuleTypeError(rule_type, subtype)


def rule_from_mapping(rule: Mapping[str, Any], rule_id: Optional[str] = None) -> RuleNode:
    """Build a rule from a partial mapping carrying its own discriminators."""
    fields = dict(rule)
    return create_rule(fields.pop("type", None), fields.pop("subtype", None), rule_id=rule_id, **fields)


def create_operator(operator: Union[LogicalOperator, str] = LogicalOperator.AND,
                    operator_id: Optional[str] = None) -> OperatorNode:
    return OperatorNode(id=operator_id or new_node_id(), operator=LogicalOperator(operator))


def create_group(rules: Iterable[Any] = (), group_id: Optional[str] = None) -> GroupNode:
    return GroupNode(id=group_id or new_node_id(), rules=tuple(rules))


def parse_state(data: Iterable[Any]) -> AccessControlState:
    """Parse a JSON-style list of node dicts into an immutable state."""
    return _state_adapter.validate_python(list(data))


def parse_node(data: Any):
    return _node_adapter.validate_python(data)


def dump_state(state: Iterable[Any]) -> List[Dict[str, Any]]:
    """Dump a state to plain JSON-compatible data."""
    return _state_adapter.dump_python(tuple(state), mode="json")


# Reducer actions

class BaseAction(BaseModel):
    model_config = ConfigDict(frozen=True)


class AddGroupAction(BaseAction):
    type: Literal["ADD_GROUP"] = "ADD_GROUP"


class RemoveGroupAction(BaseAction):
    type: Literal["REMOVE_GROUP"] = "REMOVE_GROUP"
    group_id: str


class AddRuleAction(BaseAction):
    type: Literal["ADD_RULE"] = "ADD_RULE"
    group_id: str
    rule: Dict[str, Any] = Field(..., description="Rule fields including type and subtype, without id")


class RemoveRuleAction(BaseAction):
    type: Literal["REMOVE_RULE"] = "REMOVE_RULE"
    rule_id: str


class UpdateRuleAction(BaseAction):
    type: Literal["UPDATE_RULE"] = "UPDATE_RULE"
    rule_id: str
    updates: Dict[str, Any] = Field(default_factory=dict)


class UpdateOperatorAction(BaseAction):
    type: Literal["UPDATE_OPERATOR"] = "UPDATE_OPERATOR"
    operator_id: str
    operator: LogicalOperator


AccessControlAction = Annotated[
    Union[AddGroupAction, RemoveGroupAction, AddRuleAction,
          RemoveRuleAction, UpdateRuleAction, UpdateOperatorAction],
    Field(discriminator="type"),
]

_action_adapter: TypeAdapter = TypeAdapter(AccessControlAction)


def parse_action(data: Any):
    return _action_adapter.validate_python(data)
