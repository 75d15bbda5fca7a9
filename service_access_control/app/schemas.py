"""
Request and response models for the Access Control Service API.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from .rules.models import AccessControlAction, Node
from .rules.unlock import UnlockOption, VideoPrice


class StateRequest(BaseModel):
    """Request carrying an access control tree."""
    state: List[Node] = Field(..., description="Top-level nodes of the tree")
    video_id: Optional[str] = Field(None, description="Video the tree belongs to, for log correlation")


class ReduceRequest(BaseModel):
    """Request model for applying reducer actions."""
    state: Optional[List[Node]] = Field(None, description="Tree to start from; defaults to the template")
    actions: List[AccessControlAction] = Field(default_factory=list, description="Actions in dispatch order")


class StateResponse(BaseModel):
    state: List[Dict[str, Any]]


class ConditionsRequest(BaseModel):
    """Request carrying verifier conditions."""
    conditions: List[Any] = Field(..., description="Unified access control conditions")


class FromConditionsRequest(ConditionsRequest):
    reanchor: bool = Field(True, description="Restore template anchor ids by position")


class ConditionsResponse(BaseModel):
    conditions: List[Any]
    valid: bool


class ConditionsValidationResponse(BaseModel):
    valid: bool


class TokenIdRequest(ConditionsRequest):
    """Request model for substituting the minted token id."""
    token_id: str = Field(..., min_length=1, description="Minted token id")


class RuleValidationResponse(BaseModel):
    valid: bool
    errors: Dict[str, str] = Field(default_factory=dict, description="Messages keyed by rule id")


class PlaybackAccessResponse(BaseModel):
    acl: List[Any]
    type: Literal["lit"] = "lit"


class UnlockOptionsRequest(BaseModel):
    """Request model for unlock-option derivation."""
    state: Optional[List[Node]] = Field(None, description="Access control tree")
    conditions: Optional[List[Any]] = Field(None, description="Conditions from video metadata")
    video_id: Optional[str] = Field(None, description="Video being unlocked, for log correlation")
    price: VideoPrice = Field(default_factory=VideoPrice, description="Video price")

    @model_validator(mode="after")
    def require_policy(self):
        if self.state is None and self.conditions is None:
            raise ValueError("Either state or conditions is required")
        return self


class UnlockOptionsResponse(BaseModel):
    options: List[UnlockOption]
