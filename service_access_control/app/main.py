"""
Access Control service for Loop.
"""

from contextlib import contextmanager

from pydantic import ValidationError as PydanticValidationError

from shared.base_service import BaseService
from shared.errors import ValidationError
from shared.logging import set_video_context

from .rules.anchors import reanchor
from .rules.conversion import (
    build_playback_access,
    from_wire_format,
    substitute_token_id,
    to_wire_format,
    validate_conditions,
)
from .rules.models import dump_state
from .rules.reducer import apply_actions
from .rules.template import default_template
from .rules.unlock import derive_unlock_options
from .rules.validation import validate_state
from .schemas import (
    ConditionsRequest,
    ConditionsResponse,
    ConditionsValidationResponse,
    FromConditionsRequest,
    PlaybackAccessResponse,
    ReduceRequest,
    RuleValidationResponse,
    StateRequest,
    StateResponse,
    TokenIdRequest,
    UnlockOptionsRequest,
    UnlockOptionsResponse,
)


@contextmanager
def _rule_input_errors():
    """Report rule fields of the wrong type as validation errors."""
    try:
        yield
    except PydanticValidationError as e:
        raise ValidationError(
            "Rule fields failed validation",
            details={"errors": [
                {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
                for error in e.errors()
            ]}
        ) from e


class AccessControlService(BaseService):
    """Access control service implementation."""

    def __init__(self):
        super().__init__("access_control", 8020)
        self._setup_access_control_routes()

    def _convert_to_wire(self, state):
        with self.metrics.time_operation("access_control_conversion_duration_seconds", direction="to_wire"):
            conditions = to_wire_format(state, self.config)
        self.metrics.increment_counter("access_control_conversions_total", direction="to_wire")
        return conditions

    def _convert_from_wire(self, conditions, anchor: bool = True):
        with self.metrics.time_operation("access_control_conversion_duration_seconds", direction="from_wire"):
            state = from_wire_format(conditions)
            if anchor:
                state = reanchor(state)
        self.metrics.increment_counter("access_control_conversions_total", direction="from_wire")
        return state

    def _setup_access_control_routes(self):
        """Set up access-control-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "access_control",
                "message": "Loop - Access Control Service",
                "version": "1.0.0",
                "capabilities": ["rule_builder", "condition_conversion", "unlock_options"]
            }

        @self.app.get("/access-control/template", response_model=StateResponse)
        async def get_template():
            """Default tree a new video starts from."""
            return StateResponse(state=dump_state(default_template(self.config)))

        @self.app.post("/access-control/reduce", response_model=StateResponse)
        async def reduce(request: ReduceRequest):
            """Apply builder actions in dispatch order."""
            state = tuple(request.state) if request.state is not None else default_template(self.config)

            with _rule_input_errors():
                state = apply_actions(state, request.actions)

            for action in request.actions:
                self.metrics.increment_counter("access_control_actions_total", action=action.type)

            self.logger.info("Access control actions applied", action_count=len(request.actions))
            return StateResponse(state=dump_state(state))

        @self.app.post("/access-control/conditions", response_model=ConditionsResponse)
        async def convert_to_conditions(request: StateRequest):
            """Serialize a tree to verifier conditions."""
            conditions = self._convert_to_wire(tuple(request.state))
            return ConditionsResponse(conditions=conditions, valid=validate_conditions(conditions))

        @self.app.post("/access-control/state", response_model=StateResponse)
        async def convert_to_state(request: FromConditionsRequest):
            """Rebuild a tree from verifier conditions."""
            with _rule_input_errors():
                state = self._convert_from_wire(request.conditions, anchor=request.reanchor)
            return StateResponse(state=dump_state(state))

        @self.app.post("/access-control/conditions/validate", response_model=ConditionsValidationResponse)
        async def check_conditions(request: ConditionsRequest):
            """Structural check of verifier conditions."""
            return ConditionsValidationResponse(valid=validate_conditions(request.conditions))

        @self.app.post("/access-control/conditions/token-id", response_model=ConditionsRequest)
        async def set_token_id(request: TokenIdRequest):
            """Substitute the minted token id for the placeholder."""
            conditions = substitute_token_id(
                request.conditions, request.token_id, self.config.token_placeholder
            )
            self.metrics.record_business_event("token_id_substituted")
            self.logger.info("Token id substituted", token_id=request.token_id)
            return ConditionsRequest(conditions=conditions)

        @self.app.post("/access-control/rules/validate", response_model=RuleValidationResponse)
        async def check_rules(request: StateRequest):
            """Validate every token rule in a tree."""
            errors = validate_state(request.state)
            return RuleValidationResponse(valid=not errors, errors=errors)

        @self.app.post("/access-control/playback-access", response_model=PlaybackAccessResponse)
        async def playback_access(request: StateRequest):
            """Build the playback access object saved with a protected video."""
            set_video_context(request.video_id)
            access = build_playback_access(tuple(request.state), self.config)
            self.metrics.increment_counter("access_control_conversions_total", direction="to_wire")
            self.metrics.record_business_event("playback_access_built")
            return PlaybackAccessResponse(**access)

        @self.app.post("/access-control/unlock-options", response_model=UnlockOptionsResponse)
        async def unlock_options(request: UnlockOptionsRequest):
            """Derive the options a viewer can use to unlock a video."""
            set_video_context(request.video_id)
            if request.state is not None:
                state = tuple(request.state)
            else:
                with _rule_input_errors():
                    state = self._convert_from_wire(request.conditions)

            options = derive_unlock_options(state, request.price)
            for option in options:
                self.metrics.increment_counter("unlock_options_derived_total", type=option.type)

            self.logger.info("Unlock options derived", option_count=len(options))
            return UnlockOptionsResponse(options=options)


def create_app():
    """Create access control service application."""
    service = AccessControlService()
    return service.app


if __name__ == "__main__":
    service = AccessControlService()
    service.run()
