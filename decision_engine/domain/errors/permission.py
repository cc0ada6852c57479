"""Authorization errors for role-gated operations."""

from __future__ import annotations

from uuid import UUID

from decision_engine.domain.exceptions import DecisionEngineError


class PermissionDeniedError(DecisionEngineError):
    """Raised when the acting profile lacks the role an operation requires.

    Attributes:
        profile_id: The acting profile.
        action: What was attempted.
    """

    error_kind = "permission_denied"

    def __init__(self, profile_id: UUID, action: str) -> None:
        self.profile_id = profile_id
        self.action = action
        super().__init__(f"Profile {profile_id} is not permitted to {action}")
