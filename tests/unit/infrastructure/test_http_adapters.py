"""Unit tests for the HTTP realtime publisher and webhook notification dispatch.

Both adapters are exercised against httpx.MockTransport, so no network
access is needed.
"""

import json
from uuid import uuid4

import httpx
import pytest

from decision_engine.domain.errors.infrastructure import (
    InfrastructureFailureError,
    RealtimePublishError,
)
from decision_engine.domain.events.invite import InviteNotificationEvent
from decision_engine.domain.models.invite import Invite
from decision_engine.domain.models.realtime import InvalidationMessage
from decision_engine.infrastructure.adapters.notifications.webhook_notification_dispatch import (
    WebhookNotificationDispatch,
)
from decision_engine.infrastructure.adapters.realtime.http_realtime_publisher import (
    HttpRealtimePublisher,
)
from tests.helpers.decision_builders import make_instance

MESSAGE = InvalidationMessage(
    channel="decisions:global", mutation_id="m-1", payload={"type": "instance_created"}
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpRealtimePublisher:
    """Tests for HttpRealtimePublisher."""

    @pytest.mark.asyncio
    async def test_posts_channel_and_data(self) -> None:
        """Test the request URL, headers and body."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        async with _client(handler) as client:
            publisher = HttpRealtimePublisher(client, "http://bus:8000/", api_key="secret")
            await publisher.publish(MESSAGE)

        request = seen[0]
        assert str(request.url) == "http://bus:8000/api/publish"
        assert request.headers["X-API-Key"] == "secret"
        assert json.loads(request.content) == {
            "channel": "decisions:global",
            "data": {"mutationId": "m-1", "type": "instance_created"},
        }

    @pytest.mark.asyncio
    async def test_no_api_key_header_when_unset(self) -> None:
        """Test that the key header is omitted without a key."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        async with _client(handler) as client:
            await HttpRealtimePublisher(client, "http://bus").publish(MESSAGE)

        assert "X-API-Key" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        """Test that a non-2xx response raises RealtimePublishError."""
        async with _client(lambda request: httpx.Response(503)) as client:
            publisher = HttpRealtimePublisher(client, "http://bus")

            with pytest.raises(RealtimePublishError) as exc_info:
                await publisher.publish(MESSAGE)

        assert exc_info.value.channel == "decisions:global"

    @pytest.mark.asyncio
    async def test_error_in_body(self) -> None:
        """Test that a 200 carrying an error object still fails."""
        response = httpx.Response(200, json={"error": {"code": 102, "message": "unknown channel"}})
        async with _client(lambda request: response) as client:
            publisher = HttpRealtimePublisher(client, "http://bus")

            with pytest.raises(RealtimePublishError):
                await publisher.publish(MESSAGE)

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        """Test that connection failures are wrapped."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            publisher = HttpRealtimePublisher(client, "http://bus")

            with pytest.raises(RealtimePublishError):
                await publisher.publish(MESSAGE)


@pytest.fixture
def invite_event(propose_vote_template) -> InviteNotificationEvent:
    instance = make_instance(propose_vote_template)
    invite = Invite(
        id=uuid4(), instance_id=instance.id, email="a@example.org", invited_by=uuid4()
    )
    return InviteNotificationEvent.for_invite_created(invite, instance)


class TestWebhookNotificationDispatch:
    """Tests for WebhookNotificationDispatch retries."""

    @pytest.mark.asyncio
    async def test_delivered_first_attempt(self, invite_event) -> None:
        """Test that a 2xx response is accepted immediately."""
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(202)

        async with _client(handler) as client:
            dispatch = WebhookNotificationDispatch(client, "http://mail/hook")
            await dispatch.dispatch(invite_event)

        assert len(calls) == 1
        assert calls[0].headers["X-Event-Type"] == invite_event.event_type
        assert json.loads(calls[0].content)["recipient_email"] == "a@example.org"

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, invite_event) -> None:
        """Test that a transient failure is retried."""
        statuses = iter([500, 200])

        async with _client(lambda request: httpx.Response(next(statuses))) as client:
            dispatch = WebhookNotificationDispatch(client, "http://mail/hook", max_retries=3)
            await dispatch.dispatch(invite_event)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, invite_event) -> None:
        """Test that exhausting retries raises InfrastructureFailureError."""
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("down", request=request)

        async with _client(handler) as client:
            dispatch = WebhookNotificationDispatch(client, "http://mail/hook", max_retries=2)

            with pytest.raises(InfrastructureFailureError) as exc_info:
                await dispatch.dispatch(invite_event)

        assert len(calls) == 2
        assert exc_info.value.operation == "notification_dispatch"
