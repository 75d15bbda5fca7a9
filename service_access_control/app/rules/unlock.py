"""
Unlock-option derivation.

Turns a video's access control tree and price into the flat list of ways a
viewer can unlock it: one option per token group the creator configured,
then a purchase option when the video has a price.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from shared.logging import get_logger

from .anchors import find_user_group
from .models import AccessControlState, NodeType
from .pricing import USDC_SUBUNITS, format_money, usdc_minor_to_usd

logger = get_logger("access_control.unlock")

PAYMENT_OPTION_ID = "payment"


class VideoPrice(BaseModel):
    """Video price in minor units."""
    amount: str = Field("0", pattern=r"^[0-9]+$", description="Price in currency minor units, as an integer string")
    currency: Literal["USDC"] = "USDC"
    denominated_subunits: str = Field(str(USDC_SUBUNITS), description="Minor units per whole unit")


class TokenDetails(BaseModel):
    type: str
    amount: Optional[int] = None


class UnlockOption(BaseModel):
    """One way for a viewer to satisfy the access policy."""
    id: str
    type: Literal["token", "payment"]
    title: str
    description: str
    contract_address: Optional[str] = None
    token_details: Optional[TokenDetails] = None
    price: Optional[int] = None


def _token_option(group) -> UnlockOption:
    token_rule = next((rule for rule in group.rules if rule.type == NodeType.TOKEN), None)
    subtype = token_rule.subtype if token_rule is not None else "token"

    return UnlockOption(
        id=group.id,
        type="token",
        title="Token Access",
        description=f"Access with {subtype}",
        contract_address=token_rule.contract if token_rule is not None else None,
        token_details=TokenDetails(
            type=subtype,
            amount=token_rule.num_tokens if token_rule is not None else None,
        ),
    )


def _payment_option(amount: int) -> UnlockOption:
    return UnlockOption(
        id=PAYMENT_OPTION_ID,
        type="payment",
        title="Purchase Video",
        description=f"Buy this video for {format_money(usdc_minor_to_usd(amount))} USDC",
        price=amount,
    )


def derive_unlock_options(state: AccessControlState, price: VideoPrice) -> List[UnlockOption]:
    """
    Derive the unlock options offered to a viewer.

    Token options come from the direct child groups of the user group, in
    tree order, followed by a single payment option when the price is above
    zero. A tree without the template anchors yields no options at all; the
    caller shows it as loading or unconfigured.
    """
    user_group = find_user_group(state)
    if user_group is None:
        logger.debug("Template anchors missing, no unlock options")
        return []

    options = [_token_option(node) for node in user_group.rules if node.type == NodeType.GROUP]

    amount = int(price.amount)
    if amount > 0:
        options.append(_payment_option(amount))

    return options
