"""HTTP client for the goals/routines/activities API.

All calls are scoped to the current identity by the bearer token the API
receives; this module never filters by user itself.
"""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from src.core.config import constants, settings
from src.core.day_keys import DayKeyPolicy, get_default_policy
from src.core.errors import AuthorizationError, RecordNotFoundError, RemoteServiceError
from src.core.identity import IdentityProvider, identity_provider
from src.domain.activity import CompletionEvent, EventOrigin
from src.domain.item import Goal, Routine


logger = logging.getLogger(__name__)


class ProductivityAPIClient:
    """Async client for the remote CRUD API.

    Raises typed errors from ``src.core.errors``; callers decide the fallback.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        identity: IdentityProvider | None = None,
        timeout: float | None = None,
        policy: DayKeyPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._identity = identity or identity_provider
        self._timeout = timeout if timeout is not None else settings.api_timeout_seconds
        self._policy = policy or get_default_policy()
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self._identity.current_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, method: str, path: str, *, payload: dict[str, Any] | None = None) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(method, url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            msg = f"{method} {path} failed: {e!s}"
            raise RemoteServiceError(msg) from e

        if response.status_code in (constants.HTTP_UNAUTHORIZED, constants.HTTP_FORBIDDEN):
            msg = f"{method} {path} not authorized for current identity"
            raise AuthorizationError(msg)
        if response.status_code == constants.HTTP_NOT_FOUND:
            msg = f"{method} {path}: record not found"
            raise RecordNotFoundError(msg, status_code=response.status_code)
        if not response.is_success:
            msg = f"{method} {path} returned status {response.status_code}"
            raise RemoteServiceError(msg, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            msg = f"{method} {path} returned a non-JSON body"
            raise RemoteServiceError(msg, status_code=response.status_code) from e

    async def _fetch_list(self, path: str) -> list[dict[str, Any]]:
        data = await self._request("GET", path)
        if not isinstance(data, list):
            logger.warning("GET %s returned %s instead of a list", path, type(data).__name__)
            return []
        return [item for item in data if isinstance(item, dict)]

    @staticmethod
    def _parse_models(records: list[dict[str, Any]], model: type[BaseModel], path: str) -> list[Any]:
        parsed = []
        for record in records:
            try:
                parsed.append(model.model_validate(record))
            except ValidationError as e:
                logger.warning("Skipping malformed record from %s: %s", path, e)
        return parsed

    @staticmethod
    def _parse_goal(data: Any, path: str) -> Goal:
        try:
            return Goal.model_validate(data)
        except ValidationError as e:
            msg = f"{path} returned a malformed goal: {e}"
            raise RemoteServiceError(msg) from e

    # Reads

    async def fetch_goals(self) -> list[Goal]:
        return self._parse_models(await self._fetch_list("/goals"), Goal, "/goals")

    async def fetch_routines(self) -> list[Routine]:
        return self._parse_models(await self._fetch_list("/routines"), Routine, "/routines")

    async def fetch_activities(self) -> list[CompletionEvent]:
        """Fetch the identity's activity records as server-origin events."""
        events = []
        for record in await self._fetch_list("/activities"):
            try:
                events.append(CompletionEvent.from_record(record, origin=EventOrigin.SERVER, policy=self._policy))
            except (ValidationError, ValueError) as e:
                logger.warning("Skipping malformed activity record: %s", e)
        return events

    # Writes

    async def create_activity(self, event: CompletionEvent) -> CompletionEvent:
        """Record a completion remotely.

        Returns:
            The event as stored, carrying the server-assigned id
        """
        payload = {
            "type": event.parent_type.value,
            "refId": event.parent_ref,
            "title": event.title,
            "completedAt": event.completed_at,
            "dateString": event.day_key,
        }
        data = await self._request("POST", "/activities", payload=payload)
        if not isinstance(data, dict):
            msg = "POST /activities returned no record"
            raise RemoteServiceError(msg)
        try:
            return CompletionEvent.from_record(data, origin=EventOrigin.SERVER, policy=self._policy)
        except (ValidationError, ValueError) as e:
            msg = f"POST /activities returned a malformed record: {e}"
            raise RemoteServiceError(msg) from e

    async def delete_activity(self, activity_id: str) -> None:
        await self._request("DELETE", f"/activities/{activity_id}")

    async def complete_goal(self, goal_id: str) -> Goal:
        """Mark a goal completed; the server stamps ``completedAt``."""
        data = await self._request("POST", f"/goals/{goal_id}/complete")
        return self._parse_goal(data, f"/goals/{goal_id}/complete")

    async def update_goal(self, goal_id: str, *, completed: bool, completed_at: str | None) -> Goal:
        data = await self._request(
            "PUT",
            f"/goals/{goal_id}",
            payload={"completed": completed, "completedAt": completed_at},
        )
        return self._parse_goal(data, f"/goals/{goal_id}")

    async def delete_goal(self, goal_id: str) -> None:
        await self._request("DELETE", f"/goals/{goal_id}")

    async def delete_routine(self, routine_id: str) -> None:
        await self._request("DELETE", f"/routines/{routine_id}")
