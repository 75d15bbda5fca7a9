"""
Per-subtype schemas for token rules.

Rules can hold invalid values while they are being edited; these schemas
only gate saving. Failures are reported as one human-readable message per
rule, never raised.
"""

import re
from dataclasses import dataclass
from typing import Annotated, Any, Dict, Iterable, Literal, Mapping, Optional, Union

from pydantic import AfterValidator, BaseModel, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from .models import NodeType

CONTRACT_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


class _TokenRuleSchema(BaseModel):
    id: str
    type: Literal["token"]
    chain: str
    contract: str

    @field_validator("chain")
    @classmethod
    def chain_required(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("chain_required", "Chain is required")
        return value

    @field_validator("contract")
    @classmethod
    def contract_address(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("contract_required", "Contract address is required")
        if not CONTRACT_ADDRESS_PATTERN.match(value):
            raise PydanticCustomError("contract_format", "Invalid contract address format")
        return value


def _at_least_one(value: int) -> int:
    if value < 1:
        raise PydanticCustomError("num_tokens_min", "Number of tokens must be at least 1")
    return value


TokenCount = Annotated[int, AfterValidator(_at_least_one)]


class ERC20RuleSchema(_TokenRuleSchema):
    subtype: Literal["ERC20"]
    num_tokens: TokenCount


class ERC721RuleSchema(_TokenRuleSchema):
    subtype: Literal["ERC721"]
    token_id: Optional[str] = None


class ERC1155RuleSchema(_TokenRuleSchema):
    subtype: Literal["ERC1155"]
    num_tokens: TokenCount
    token_id: str

    @field_validator("token_id")
    @classmethod
    def token_id_required(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("token_id_required", "Token ID is required")
        return value


TokenRuleSchema = Annotated[
    Union[ERC20RuleSchema, ERC721RuleSchema, ERC1155RuleSchema],
    Field(discriminator="subtype"),
]

_token_rule_adapter: TypeAdapter = TypeAdapter(TokenRuleSchema)


@dataclass
class RuleValidationResult:
    """Outcome of validating a single rule."""
    success: bool
    error: Optional[str] = None


def validate_token_rule(rule: Any) -> RuleValidationResult:
    """Validate a token rule (node or mapping) against its subtype schema."""
    if isinstance(rule, BaseModel):
        data = rule.model_dump()
    elif isinstance(rule, Mapping):
        data = dict(rule)
    else:
        return RuleValidationResult(success=False, error="Rule must be an object")

    try:
        _token_rule_adapter.validate_python(data)
    except PydanticValidationError as exc:
        message = ", ".join(error["msg"] for error in exc.errors())
        return RuleValidationResult(success=False, error=message)

    return RuleValidationResult(success=True)


def _iter_nodes(nodes: Iterable) -> Iterable:
    for node in nodes:
        yield node
        if node.type == NodeType.GROUP:
            yield from _iter_nodes(node.rules)


def validate_state(state: Iterable) -> Dict[str, str]:
    """Validate every token rule in a tree, keyed by rule id."""
    errors: Dict[str, str] = {}
    for node in _iter_nodes(state):
        if node.type != NodeType.TOKEN:
            continue
        result = validate_token_rule(node)
        if not result.success:
            errors[node.id] = result.error
    return errors
