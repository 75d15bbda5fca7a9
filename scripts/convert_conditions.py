#!/usr/bin/env python3
"""
Convert access control trees to verifier conditions and back.

Useful for inspecting what a video's stored conditions grant, or for
producing conditions from a tree exported by the rule builder without
running the service.
"""

import argparse
import json
from pathlib import Path
import sys
import os

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from pydantic import ValidationError as PydanticValidationError  # noqa: E402

from shared.config import BaseConfig  # noqa: E402
from shared.errors import AccessLayerException  # noqa: E402
from service_access_control.app.rules.anchors import reanchor  # noqa: E402
from service_access_control.app.rules.conversion import (  # noqa: E402
    from_wire_format,
    substitute_token_id,
    to_wire_format,
    validate_conditions,
)
from service_access_control.app.rules.models import dump_state, parse_state  # noqa: E402
from service_access_control.app.rules.template import default_template  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Convert access control trees and conditions.")
    parser.add_argument("direction", choices=["to-conditions", "to-state", "template"],
                        help="Conversion to run")
    parser.add_argument("--input", type=Path, default=None, help="JSON input file (defaults to stdin)")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write the JSON result")
    parser.add_argument("--token-id", default=None, help="Substitute the minted token id into the conditions")
    parser.add_argument("--no-reanchor", action="store_true", help="Keep fresh ids when rebuilding a tree")
    parser.add_argument("--env", default=os.getenv("LOOP_ENV", "local"), help="Deployment environment")
    return parser.parse_args()


def _read_input(path):
    if path is None:
        return json.load(sys.stdin)
    return json.loads(path.read_text())


def convert(direction: str, data, settings: BaseConfig, token_id=None, anchor: bool = True) -> dict:
    """Run one conversion and return a JSON-ready summary."""
    if direction == "template":
        return {"state": dump_state(default_template(settings))}

    if direction == "to-conditions":
        conditions = to_wire_format(parse_state(data), settings)
        if token_id:
            conditions = substitute_token_id(conditions, token_id, settings.token_placeholder)
        return {"conditions": conditions, "valid": validate_conditions(conditions)}

    if token_id:
        data = substitute_token_id(data, token_id, settings.token_placeholder)
    state = from_wire_format(data)
    if anchor:
        state = reanchor(state)
    return {"state": dump_state(state)}


def main() -> int:
    args = _parse_args()
    settings = BaseConfig(env=args.env)

    try:
        data = None if args.direction == "template" else _read_input(args.input)
        result = convert(args.direction, data, settings, args.token_id, anchor=not args.no_reanchor)
    except KeyboardInterrupt:
        return 130
    except (json.JSONDecodeError, PydanticValidationError, AccessLayerException) as exc:
        print(f"[convert-conditions] failed: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2))

    if args.output:
        args.output.write_text(json.dumps(result, indent=2))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
