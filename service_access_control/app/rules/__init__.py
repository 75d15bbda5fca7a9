"""
Access control rule engine package.

Defines the tree model for a video's access policy and the operations the
service exposes over it. Policies are boolean trees of token-balance,
ownership, purchase and lit-action conditions joined by AND/OR operators.

Modules of interest:
- models: Node variants, the rule factory and reducer actions.
- anchors: Well-known template ids and lookups.
- template: The default tree a new video starts from.
- reducer: Pure tree mutations that preserve operator invariants.
- conversion: Tree <-> verifier condition format, placeholder substitution.
- validation: Per-subtype token rule schemas gating save.
- unlock: Unlock options presented to viewers.
- pricing: USDC minor-unit conversion and price display.

Everything here is synchronous and free of I/O; persistence and policy
evaluation happen outside this package.
"""
