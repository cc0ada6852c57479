"""Unit tests for transition summaries and invite notification events."""

from uuid import uuid4

from decision_engine.domain.events.invite import (
    INVITE_CREATED_EVENT_TYPE,
    INVITE_ROLE_CHANGED_EVENT_TYPE,
    InviteNotificationEvent,
)
from decision_engine.domain.models.invite import Invite, InviteRole
from decision_engine.domain.models.transition import (
    InstanceTransitionResult,
    TransitionAction,
    TransitionSummary,
)
from tests.helpers.decision_builders import make_instance


class TestTransitionSummary:
    """Tests for TransitionSummary.from_results."""

    def test_counts_by_action(self) -> None:
        """Test that advanced and completed both count as processed."""
        failed_id = uuid4()
        results = [
            InstanceTransitionResult(uuid4(), TransitionAction.ADVANCED, "propose", "vote"),
            InstanceTransitionResult(uuid4(), TransitionAction.COMPLETED, "vote"),
            InstanceTransitionResult(uuid4(), TransitionAction.SKIPPED, "propose", "vote"),
            InstanceTransitionResult(
                failed_id, TransitionAction.FAILED, "propose", error="boom"
            ),
        ]

        summary = TransitionSummary.from_results(results)

        assert summary.to_dict() == {
            "processed": 2,
            "failed": 1,
            "skipped": 1,
            "errors": [f"{failed_id}: boom"],
        }

    def test_empty_tick(self) -> None:
        """Test that a tick without candidates is all zeros."""
        summary = TransitionSummary.from_results([])

        assert (summary.processed, summary.failed, summary.skipped) == (0, 0, 0)
        assert summary.errors == ()


class TestInviteNotificationEvent:
    """Tests for invite notification payloads."""

    def test_invite_created_payload(self, propose_vote_template) -> None:
        """Test that the created event addresses the invitee."""
        instance = make_instance(propose_vote_template)
        invite = Invite(
            id=uuid4(),
            instance_id=instance.id,
            email="member@example.org",
            invited_by=uuid4(),
        )

        event = InviteNotificationEvent.for_invite_created(invite, instance)
        body = event.to_dict()

        assert body["event_type"] == INVITE_CREATED_EVENT_TYPE
        assert body["recipient_email"] == "member@example.org"
        assert body["template_data"]["instance_name"] == instance.name
        assert body["template_data"]["role"] == "participant"

    def test_role_changed_payload(self, propose_vote_template) -> None:
        """Test that the role change event carries both roles."""
        instance = make_instance(propose_vote_template)
        invite = Invite(
            id=uuid4(),
            instance_id=instance.id,
            email="member@example.org",
            invited_by=uuid4(),
            role=InviteRole.ADMIN,
        )

        event = InviteNotificationEvent.for_role_changed(invite, instance, "participant")

        assert event.event_type == INVITE_ROLE_CHANGED_EVENT_TYPE
        assert event.template_data["previous_role"] == "participant"
        assert event.template_data["role"] == "admin"
