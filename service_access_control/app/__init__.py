"""
Access Control Service package for Loop.

This package lets creators build the access policy of a video and lets
players work out how a viewer can unlock it. It provides:

- app.main: API surface for building, converting, validating and deriving.
- app.rules: Tree model, reducer, condition conversion and unlock options.

Guidelines:
- The service is stateless; trees travel in requests, conditions are
  persisted by the caller inside video metadata.
- Conversion output must stay byte-compatible with the policy verifier.
"""
