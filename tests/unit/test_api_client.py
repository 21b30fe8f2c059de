"""Unit tests for the productivity API client."""

import json
from collections.abc import Callable

import httpx
import pytest

from src.core.api_client import ProductivityAPIClient
from src.core.errors import AuthorizationError, RecordNotFoundError, RemoteServiceError
from src.core.identity import IdentityProvider
from src.domain.activity import EventOrigin, ParentType


BASE_URL = "http://api.test/api"


def _client(handler: Callable[[httpx.Request], httpx.Response], policy, token: str | None = "tok-123"):
    return ProductivityAPIClient(
        base_url=BASE_URL,
        identity=IdentityProvider(token),
        timeout=5.0,
        policy=policy,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def requests_seen() -> list[httpx.Request]:
    return []


@pytest.mark.unit
class TestReads:
    async def test_fetch_activities_returns_server_events(self, policy, requests_seen):
        def handler(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return httpx.Response(
                200,
                json=[
                    {
                        "_id": "act1",
                        "type": "routine",
                        "refId": "r1",
                        "title": "Stretch",
                        "dateString": "2024-01-10",
                        "completedAt": "2024-01-10T07:00:00Z",
                    },
                    {"_id": "act2", "type": "goal", "refId": "g1", "completedAt": "2024-01-09T21:00:00Z"},
                ],
            )

        events = await _client(handler, policy).fetch_activities()

        assert [event.id for event in events] == ["act1", "act2"]
        assert all(event.origin == EventOrigin.SERVER for event in events)
        assert events[1].day_key == "2024-01-09"
        assert requests_seen[0].url == httpx.URL(f"{BASE_URL}/activities")

    async def test_requests_carry_bearer_token(self, policy, requests_seen):
        def handler(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return httpx.Response(200, json=[])

        await _client(handler, policy).fetch_goals()

        assert requests_seen[0].headers["Authorization"] == "Bearer tok-123"

    async def test_no_token_sends_no_authorization_header(self, policy, requests_seen):
        def handler(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return httpx.Response(200, json=[])

        await _client(handler, policy, token=None).fetch_routines()

        assert "Authorization" not in requests_seen[0].headers

    async def test_malformed_activity_records_are_skipped(self, policy):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json=[
                    {"_id": "ok", "type": "routine", "dateString": "2024-01-10"},
                    {"_id": "bad", "type": "routine"},
                    {"type": "routine", "dateString": "2024-01-10"},
                    "nonsense",
                ],
            )

        events = await _client(handler, policy).fetch_activities()

        assert [event.id for event in events] == ["ok"]

    async def test_non_string_timestamp_record_is_skipped(self, policy):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json=[
                    {"_id": "ok", "type": "routine", "refId": "r1", "completedAt": "2024-01-10T07:00:00Z"},
                    {"_id": "epoch", "type": "routine", "refId": "r2", "completedAt": 1704873600000},
                ],
            )

        events = await _client(handler, policy).fetch_activities()

        assert [event.id for event in events] == ["ok"]

    async def test_non_list_body_reads_as_empty(self, policy):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": "nope"})

        assert await _client(handler, policy).fetch_goals() == []

    async def test_fetch_routines_skips_invalid(self, policy):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"_id": "r1", "title": "Stretch"}, {"title": "No id"}])

        routines = await _client(handler, policy).fetch_routines()

        assert [routine.id for routine in routines] == ["r1"]


@pytest.mark.unit
class TestErrorMapping:
    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_auth_statuses_raise_authorization_error(self, policy, status_code):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, json={"error": "denied"})

        with pytest.raises(AuthorizationError):
            await _client(handler, policy).delete_activity("act1")

    async def test_not_found_raises_record_not_found(self, policy):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": "missing"})

        with pytest.raises(RecordNotFoundError) as exc_info:
            await _client(handler, policy).delete_goal("g1")

        assert exc_info.value.status_code == 404
        assert "not found" in str(exc_info.value)

    async def test_server_error_raises_remote_error(self, policy):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        with pytest.raises(RemoteServiceError) as exc_info:
            await _client(handler, policy).fetch_activities()

        assert exc_info.value.status_code == 500

    async def test_transport_failure_raises_remote_error(self, policy):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RemoteServiceError, match="connection refused"):
            await _client(handler, policy).fetch_activities()

    async def test_non_json_body_raises_remote_error(self, policy):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with pytest.raises(RemoteServiceError, match="non-JSON"):
            await _client(handler, policy).fetch_goals()


@pytest.mark.unit
class TestWrites:
    async def test_create_activity_posts_record(self, policy, make_event, requests_seen):
        def handler(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            body = json.loads(request.content)
            return httpx.Response(201, json={"_id": "srv1", "user": "uid-1", **body})

        draft = make_event("2024-01-10", ref="r1", title="Stretch", origin=EventOrigin.LOCAL)

        created = await _client(handler, policy).create_activity(draft)

        sent = json.loads(requests_seen[0].content)
        assert requests_seen[0].method == "POST"
        assert sent == {
            "type": "routine",
            "refId": "r1",
            "title": "Stretch",
            "completedAt": "2024-01-10T12:00:00Z",
            "dateString": "2024-01-10",
        }
        assert created.id == "srv1"
        assert created.origin == EventOrigin.SERVER
        assert created.parent_type == ParentType.ROUTINE

    async def test_create_activity_without_record_raises(self, policy, make_event):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(204)

        with pytest.raises(RemoteServiceError):
            await _client(handler, policy).create_activity(make_event("2024-01-10"))

    async def test_delete_activity_uses_id_path(self, policy, requests_seen):
        def handler(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return httpx.Response(204)

        await _client(handler, policy).delete_activity("act9")

        assert requests_seen[0].method == "DELETE"
        assert requests_seen[0].url.path == "/api/activities/act9"

    async def test_complete_goal(self, policy, requests_seen):
        def handler(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return httpx.Response(
                200, json={"_id": "g1", "title": "Read", "completed": True, "completedAt": "2024-01-10T09:00:00Z"}
            )

        goal = await _client(handler, policy).complete_goal("g1")

        assert requests_seen[0].url.path == "/api/goals/g1/complete"
        assert goal.completed is True

    async def test_update_goal_resets_completion(self, policy, requests_seen):
        def handler(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return httpx.Response(200, json={"_id": "g1", "title": "Read", "completed": False, "completedAt": None})

        goal = await _client(handler, policy).update_goal("g1", completed=False, completed_at=None)

        assert requests_seen[0].method == "PUT"
        assert json.loads(requests_seen[0].content) == {"completed": False, "completedAt": None}
        assert goal.completed is False

    async def test_malformed_goal_response_raises(self, policy):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"title": "no id"})

        with pytest.raises(RemoteServiceError, match="malformed goal"):
            await _client(handler, policy).complete_goal("g1")
