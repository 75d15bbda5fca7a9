"""
Default access control template.

A new video starts from this tree: the lit action guard AND (owning the
video NFT OR having purchased it OR satisfying one of the creator's token
groups).
"""

from typing import Optional

from shared.config import BaseConfig, get_settings

from .anchors import (
    INNER_GROUP_ID,
    LIT_ACTION_RULE_ID,
    OUTER_OPERATOR_ID,
    OWNER_RULE_ID,
    PAYWALL_RULE_ID,
    USER_GROUP_ID,
)
from .models import (
    AccessControlState,
    ERC1155OwnerRule,
    ERC1155TokenRule,
    ERC20TokenRule,
    ERC721TokenRule,
    GroupNode,
    LitActionRule,
    LogicalOperator,
    OperatorNode,
    PaywallRule,
)

# 1 USDC in minor units
DEFAULT_ERC20_AMOUNT = 1_000_000


def default_template(settings: Optional[BaseConfig] = None) -> AccessControlState:
    """Build the canonical starting tree for the configured chain."""
    settings = settings or get_settings()
    chain = settings.default_chain
    placeholder = settings.token_placeholder

    user_group = GroupNode(
        id=USER_GROUP_ID,
        rules=(
            GroupNode(
                id="erc20-group",
                rules=(
                    ERC20TokenRule(
                        id="erc20-rule",
                        chain=chain,
                        contract=settings.usdc_contract,
                        num_tokens=DEFAULT_ERC20_AMOUNT,
                    ),
                ),
            ),
            OperatorNode(id="erc20-erc721-operator", operator=LogicalOperator.OR),
            GroupNode(
                id="erc721-group",
                rules=(
                    ERC721TokenRule(
                        id="erc721-rule",
                        chain=chain,
                        contract=settings.video_nft_address,
                        token_id="1",
                        num_tokens=1,
                    ),
                ),
            ),
            OperatorNode(id="erc721-erc1155-operator", operator=LogicalOperator.OR),
            GroupNode(
                id="erc1155-group",
                rules=(
                    ERC1155TokenRule(
                        id="erc1155-rule",
                        chain=chain,
                        contract=settings.video_nft_address,
                        token_id="2",
                        num_tokens=1,
                    ),
                ),
            ),
        ),
    )

    inner_group = GroupNode(
        id=INNER_GROUP_ID,
        rules=(
            ERC1155OwnerRule(
                id=OWNER_RULE_ID,
                chain=chain,
                contract=settings.video_nft_address,
                token_id=placeholder,
                num_tokens=1,
            ),
            OperatorNode(id="owner-paywall-operator", operator=LogicalOperator.OR),
            PaywallRule(id=PAYWALL_RULE_ID, chain=chain, token_id=placeholder),
            OperatorNode(id="paywall-user-operator", operator=LogicalOperator.OR),
            user_group,
        ),
    )

    return (
        LitActionRule(id=LIT_ACTION_RULE_ID),
        OperatorNode(id=OUTER_OPERATOR_ID, operator=LogicalOperator.AND),
        inner_group,
    )
