"""
Error taxonomy for the planner, the executor and the provider gateway.

Every terminal error carries a machine-readable ``code`` plus a ``context``
dict with enough detail for diagnosis (goal name, world-state snapshot,
attempted providers). Only ``code`` and ``message`` are meant for users.
"""

from typing import Any, Dict, List, Optional


class GoapKernelError(Exception):
    """Base class for every error raised by the kernel."""

    code = "KERNEL_ERROR"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})

    def to_dict(self) -> dict:
        """User-visible representation (no internal context)."""
        return {"code": self.code, "message": self.message}


# --- Planning ---

class PlanningError(GoapKernelError):
    code = "PLANNING_FAILED"

    def __init__(
        self,
        message: str,
        goal_name: str,
        world_state: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            {"goal": goal_name, "world_state": dict(world_state or {})},
        )
        self.goal_name = goal_name
        self.world_state = dict(world_state or {})


class GoalNotFound(PlanningError):
    code = "GOAL_NOT_FOUND"


class NoPlanFound(PlanningError):
    code = "NO_PLAN_FOUND"


class PlanningTimeout(PlanningError):
    code = "PLANNING_TIMEOUT"


# --- Execution ---

class ExecutionError(GoapKernelError):
    code = "EXECUTION_FAILED"


class ActionFailed(ExecutionError):
    """An action reported failure; ``cause`` is the action's own error."""

    code = "ACTION_FAILED"

    def __init__(
        self,
        action_name: str,
        cause: Optional[BaseException],
        goal_name: str = "",
        world_state: Optional[Dict[str, Any]] = None,
        step: Optional[int] = None,
    ):
        detail = str(cause) if cause is not None else "unknown error"
        super().__init__(
            f"Action '{action_name}' failed: {detail}",
            {
                "action": action_name,
                "goal": goal_name,
                "step": step,
                "world_state": dict(world_state or {}),
            },
        )
        self.action_name = action_name
        self.cause = cause


class ActionTimedOut(ActionFailed):
    code = "ACTION_TIMED_OUT"

    def __init__(
        self,
        action_name: str,
        timeout_seconds: float,
        goal_name: str = "",
        world_state: Optional[Dict[str, Any]] = None,
        step: Optional[int] = None,
    ):
        cause = TimeoutError(f"Action timeout after {timeout_seconds}s")
        super().__init__(action_name, cause, goal_name, world_state, step)
        self.timeout_seconds = timeout_seconds


# --- Provider boundary ---

class ProviderError(GoapKernelError):
    """Raised by provider clients. Subclasses decide retryability."""

    code = "PROVIDER_ERROR"
    retryable = False

    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None):
        super().__init__(message, {"provider": provider, "status_code": status_code})
        self.provider = provider
        self.status_code = status_code


class TransientProviderError(ProviderError):
    code = "PROVIDER_TRANSIENT"
    retryable = True


class PermanentProviderError(ProviderError):
    code = "PROVIDER_PERMANENT"


# --- Gateway ---

class GatewayError(GoapKernelError):
    code = "GATEWAY_ERROR"

    def __init__(
        self,
        message: str,
        provider: str = "",
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        merged = {"provider": provider}
        merged.update(context or {})
        super().__init__(message, merged)
        self.provider = provider
        self.cause = cause


class ModelUnavailable(GatewayError):
    code = "MODEL_UNAVAILABLE"
    retryable = False


class AllProvidersFailed(GatewayError):
    code = "GENERATION_FAILED"

    def __init__(
        self,
        attempted_providers: List[str],
        failures: List[Dict[str, Any]],
        last_error: Optional[BaseException],
    ):
        last = str(last_error) if last_error is not None else "no providers configured"
        super().__init__(
            f"All providers failed. Last error: {last}",
            provider=attempted_providers[0] if attempted_providers else "",
            cause=last_error,
            context={
                "attempted_providers": list(attempted_providers),
                "failures": list(failures),
            },
        )
        self.attempted_providers = list(attempted_providers)
        self.failures = list(failures)
        self.last_error = last_error


class ObjectGenerationFailed(GatewayError):
    code = "OBJECT_GENERATION_FAILED"


class StreamFailed(GatewayError):
    code = "STREAM_FAILED"
