"""
Pytest Configuration and Fixtures

Every test gets a fresh in-memory MongoDB (mongomock) patched in where the
repositories look for the database. Email and socket gateways are mocks so
tests can assert on what would have been sent.
"""

from typing import List, Optional
from unittest.mock import MagicMock

import mongomock
import pytest

from gatepass.repositories import mongo_client
from gatepass.repositories.user_repo import UserRepository
from gatepass.domain.models import ActorContext, GatePassDraft, Item, UserRecord
from gatepass.domain.enums import Stage, UserRole
from gatepass.engine.engine import GatePassEngine
from gatepass.services.directory_service import DirectoryService
from gatepass.services.notification_service import NotificationService
from gatepass.services.event_bus_service import EventBusService
from gatepass.services.request_service import RequestService
from gatepass.utils.cache import TTLCache


# service_no, role, branches
DIRECTORY = [
    ("SV00001", UserRole.USER, ["Colombo"]),
    ("SV11111", UserRole.EXECUTIVE, ["Colombo"]),
    ("SV11112", UserRole.EXECUTIVE, ["Colombo"]),
    ("SV22222", UserRole.VERIFIER, ["Colombo"]),
    ("SV22223", UserRole.VERIFIER, ["Galle"]),
    ("SV33333", UserRole.DISPATCHER, ["Colombo"]),
    ("SV35555", UserRole.PLEADER, ["Kandy"]),
    ("SV44444", UserRole.RECEIVER, ["Kandy"]),
    ("SV45555", UserRole.RECEIVER, ["Kandy"]),
    ("SV99999", UserRole.SUPER_ADMIN, []),
    ("SV90000", UserRole.ADMIN, ["Colombo"]),
]


@pytest.fixture(autouse=True)
def db(monkeypatch):
    """Fresh mongomock database for each test"""
    database = mongomock.MongoClient(tz_aware=True)["gatepass_test"]
    monkeypatch.setattr(mongo_client, "_database", database)
    yield database


@pytest.fixture
def users(db) -> List[UserRecord]:
    repo = UserRepository()
    created = []
    for service_no, role, branches in DIRECTORY:
        created.append(repo.upsert_user(UserRecord(
            service_no=service_no,
            name=f"User {service_no}",
            email=f"{service_no.lower()}@example.com",
            role=role,
            branches=branches
        )))
    return created


def make_actor(service_no: Optional[str], role: UserRole, branches: Optional[List[str]] = None) -> ActorContext:
    return ActorContext(service_no=service_no, role=role.value, branches=branches or [])


@pytest.fixture
def requester() -> ActorContext:
    return make_actor("SV00001", UserRole.USER, ["Colombo"])


@pytest.fixture
def executive() -> ActorContext:
    return make_actor("SV11111", UserRole.EXECUTIVE, ["Colombo"])


@pytest.fixture
def verifier() -> ActorContext:
    return make_actor("SV22222", UserRole.VERIFIER, ["Colombo"])


@pytest.fixture
def dispatcher() -> ActorContext:
    return make_actor("SV35555", UserRole.PLEADER, ["Kandy"])


@pytest.fixture
def colombo_dispatcher() -> ActorContext:
    return make_actor("SV33333", UserRole.DISPATCHER, ["Colombo"])


@pytest.fixture
def receiver() -> ActorContext:
    return make_actor("SV44444", UserRole.RECEIVER, ["Kandy"])


@pytest.fixture
def super_admin() -> ActorContext:
    return make_actor("SV99999", UserRole.SUPER_ADMIN)


@pytest.fixture
def notifications() -> MagicMock:
    return MagicMock(spec=NotificationService)


@pytest.fixture
def event_bus() -> MagicMock:
    bus = MagicMock(spec=EventBusService)
    bus.publish_request_event.return_value = 1
    return bus


@pytest.fixture
def directory(users) -> DirectoryService:
    return DirectoryService(cache=TTLCache(ttl_seconds=60, max_entries=100))


@pytest.fixture
def engine(directory, notifications, event_bus) -> GatePassEngine:
    return GatePassEngine(directory=directory, notifications=notifications, event_bus=event_bus)


@pytest.fixture
def request_service(directory, notifications, event_bus) -> RequestService:
    return RequestService(directory=directory, notifications=notifications, event_bus=event_bus)


def make_draft(**overrides) -> GatePassDraft:
    """SLT movement Colombo -> Kandy with one returnable laptop"""
    fields = dict(
        items=[
            Item(
                serial_number="SN-001",
                item_code="LPT-01",
                item_description="Laptop",
                item_category="IT",
                returnable=True,
                status="returnable"
            ),
            Item(serial_number="SN-002", item_description="Cable", item_category="IT"),
        ],
        out_location="Colombo",
        in_location="Kandy",
        is_non_slt_place=False,
        executive_officer_service_no="SV11111",
        receiver_available=False,
    )
    fields.update(overrides)
    return GatePassDraft(**fields)


@pytest.fixture
def submit(request_service, requester):
    """Submit a draft as the default requester; returns the reference number"""
    def _submit(**overrides) -> str:
        return request_service.submit_request(requester, make_draft(**overrides)).reference_number
    return _submit


@pytest.fixture
def advance(engine, executive, verifier, dispatcher, colombo_dispatcher):
    """Approve a request through every stage up to and including `through`"""
    def _advance(reference_number: str, through: Stage):
        row = engine.ledger.latest(reference_number)
        actors = {
            Stage.EXECUTIVE: executive,
            Stage.VERIFIER: verifier,
            Stage.DISPATCHER: colombo_dispatcher if row.request.is_non_slt_place else dispatcher,
        }
        for stage in list(Stage)[:Stage(through).ordinal]:
            row = engine.approve(stage, reference_number, None, actors[stage])
        return row
    return _advance
