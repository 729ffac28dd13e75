"""Event Bus Service - Real-time gate pass updates over Socket.IO

Clients join rooms on connect:
    user-<serviceNo>, role-<role>, branch-<location>

Stage operations are synchronous, so publish() schedules the emit on the
server's event loop and returns immediately. Publishing is best-effort.
"""
import asyncio
from typing import Any, Dict, Iterable, List, Optional, Set

import socketio

from ..domain.enums import GatePassEvent, RequestLifecycle, UserRole
from ..domain.errors import AuthenticationError
from ..domain.models import GatePassRequest
from ..config.settings import settings
from ..utils.jwt import get_jwt_validator
from ..utils.time import format_iso, utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

_DISPATCH = [UserRole.DISPATCHER.value, UserRole.PLEADER.value]
_EXECUTIVE = [UserRole.EXECUTIVE.value, UserRole.APPROVER.value]

# Roles that care about a request at each lifecycle position
LIFECYCLE_ROLES: Dict[int, List[str]] = {
    RequestLifecycle.EXECUTIVE_PENDING: _EXECUTIVE,
    RequestLifecycle.EXECUTIVE_APPROVED: [UserRole.VERIFIER.value],
    RequestLifecycle.EXECUTIVE_REJECTED: [UserRole.USER.value],
    RequestLifecycle.VERIFY_PENDING: [UserRole.VERIFIER.value],
    RequestLifecycle.VERIFY_APPROVED: _DISPATCH,
    RequestLifecycle.VERIFY_REJECTED: [UserRole.USER.value] + _EXECUTIVE,
    RequestLifecycle.DISPATCH_PENDING: _DISPATCH,
    RequestLifecycle.DISPATCH_APPROVED: [UserRole.RECEIVER.value],
    RequestLifecycle.DISPATCH_REJECTED: [UserRole.USER.value, UserRole.VERIFIER.value],
    RequestLifecycle.RECEIVE_PENDING: [UserRole.RECEIVER.value] + _DISPATCH,
    RequestLifecycle.RECEIVED: [UserRole.USER.value] + _DISPATCH,
    RequestLifecycle.RECEIVE_REJECTED: [UserRole.USER.value] + _DISPATCH,
    RequestLifecycle.DISPATCHED: [UserRole.USER.value],
}
OVERSIGHT_ROLES = [UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value]


def user_room(service_no: str) -> str:
    return f"user-{service_no}"


def role_room(role: str) -> str:
    return f"role-{role}"


def branch_room(location: str) -> str:
    return f"branch-{location}"


def compute_targets(request: GatePassRequest) -> Set[str]:
    """Rooms that should hear about a change to this request"""
    rooms: Set[str] = set()

    for service_no in (
        request.employee_service_no,
        request.receiver_service_no,
        request.executive_officer_service_no,
    ):
        if service_no:
            rooms.add(user_room(service_no))

    for role in LIFECYCLE_ROLES.get(int(request.status), []) + OVERSIGHT_ROLES:
        rooms.add(role_room(role))

    for location in (request.out_location, request.in_location):
        if location:
            rooms.add(branch_room(location))

    return rooms


def build_payload(request: GatePassRequest) -> Dict[str, Any]:
    """Wire payload: {referenceNumber, status, updatedAt, request}"""
    return {
        "referenceNumber": request.reference_number,
        "status": int(request.status),
        "updatedAt": format_iso(request.updated_at or utc_now()),
        "request": request.model_dump(mode="json"),
    }


class EventBusService:
    """Socket.IO publisher"""

    def __init__(self, server: Optional[socketio.AsyncServer] = None):
        self.server = server or socketio.AsyncServer(
            async_mode="asgi",
            cors_allowed_origins=(
                "*" if settings.socket_cors_origins.strip() == "*" else settings.socket_cors_origins_list
            ),
            logger=False,
            engineio_logger=False
        )
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._register_handlers()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def bind_loop(self, loop: Optional[asyncio.AbstractEventLoop]) -> None:
        """Attach the loop emits are scheduled on (set during app startup)"""
        self._loop = loop

    @property
    def is_bound(self) -> bool:
        return self._loop is not None and not self._loop.is_closed()

    def _register_handlers(self) -> None:
        @self.server.event
        async def connect(sid, environ, auth=None):
            token = (auth or {}).get("token") if isinstance(auth, dict) else None
            if not token:
                logger.warning("Socket connection without token refused")
                return False
            try:
                actor = get_jwt_validator().get_actor_context(token)
            except AuthenticationError:
                return False

            rooms = [role_room(actor.role)] + [branch_room(b) for b in actor.branches]
            if actor.service_no:
                rooms.append(user_room(actor.service_no))
            for room in rooms:
                await self.server.enter_room(sid, room)
            logger.info(
                f"Socket {sid} joined {len(rooms)} rooms",
                extra={"service_no": actor.service_no, "room_count": len(rooms)}
            )
            return True

        @self.server.event
        async def disconnect(sid, *args):
            logger.debug(f"Socket {sid} disconnected")

    # =========================================================================
    # Publishing
    # =========================================================================

    async def _emit(self, event: str, payload: Dict[str, Any], rooms: List[str]) -> None:
        for room in rooms:
            await self.server.emit(event, payload, room=room)

    def publish(self, event: str, payload: Dict[str, Any], targets: Iterable[str]) -> int:
        """
        Publish one event to every target room

        Returns the number of rooms scheduled; 0 when no loop is bound.
        Never raises.
        """
        rooms = sorted(set(targets))
        if not rooms:
            return 0

        if not self.is_bound:
            logger.debug(f"Event bus not bound, dropping {event}", extra={"action": event})
            return 0

        try:
            coro = self._emit(event, payload, rooms)
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None

            if running is self._loop:
                task = self._loop.create_task(coro)
            else:
                task = asyncio.run_coroutine_threadsafe(coro, self._loop)
            task.add_done_callback(self._log_failure(event))
        except Exception as e:
            logger.warning(f"Failed to schedule event {event}: {e}", extra={"action": event})
            return 0

        logger.info(
            f"Published {event}",
            extra={"action": event, "room_count": len(rooms)}
        )
        return len(rooms)

    def publish_request_event(self, event: GatePassEvent, request: GatePassRequest) -> int:
        """Publish a request change to its computed room fan-out"""
        return self.publish(event.value, build_payload(request), compute_targets(request))

    @staticmethod
    def _log_failure(event: str):
        def callback(future) -> None:
            if future.cancelled():
                return
            error = future.exception()
            if error is not None:
                logger.warning(f"Emit of {event} failed: {error}", extra={"action": event})
        return callback


# Global event bus instance
_event_bus: Optional[EventBusService] = None


def get_event_bus() -> EventBusService:
    """Get global event bus instance"""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBusService()
    return _event_bus
