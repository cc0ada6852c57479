"""Base exception classes for the decision engine domain layer."""


class DecisionEngineError(Exception):
    """Base exception for all domain errors.

    All domain-specific exceptions MUST inherit from this class so the API
    layer and the transition scheduler can handle them uniformly.

    Each subclass family corresponds to one error kind:
    - NotFoundError: template/instance/proposal unresolved
    - ValidationError: user-correctable input problems
    - PhaseRuleViolationError: action not permitted in the current phase
    - ConcurrencyConflictError: compare-and-swap failure, caller may retry
    - PermissionDeniedError: actor lacks the required role
    - InfrastructureFailureError: storage or transport failure
    """

    error_kind: str = "decision_engine_error"

    def __init__(self, message: str = "") -> None:
        """Initialize the exception with an optional message.

        Args:
            message: Human-readable error description.
        """
        super().__init__(message)
