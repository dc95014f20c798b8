"""Shared test fixtures and configuration."""
import pytest
from fastapi.testclient import TestClient

from anoncheckin.api.deps import get_services
from anoncheckin.main import app
from anoncheckin.services import LedgerServices
from anoncheckin.services.checkin import CheckInCoordinator
from anoncheckin.services.meeting import MeetingLifecycleController
from anoncheckin.services.reader import ResilientReader
from anoncheckin.services.registry import MeetingRegistry
from anoncheckin.services.session import WalletSession
from anoncheckin.services.submitter import TransactionSubmitter
from tests.utils import START, FakeGate, FakeLedger, FakeWallet, FakeWeb3, make_settings


@pytest.fixture(autouse=True)
def disable_rate_limiting_for_tests(request):
    """Disable rate limiting for all tests except rate limiting tests."""
    from anoncheckin.core.rate_limit import limiter

    if "rate_limit" in request.keywords:
        limiter.reset()
        limiter.enabled = True
        yield
        limiter.reset()
    else:
        limiter.enabled = False
        yield
        limiter.enabled = True


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def ledger():
    """Contract state shared by every fake connection in a test."""
    return FakeLedger()


@pytest.fixture
def fake_w3(ledger):
    return FakeWeb3(ledger)


@pytest.fixture
def wallet(settings):
    return FakeWallet(chain_id=settings.CHAIN_ID)


@pytest.fixture
def gate(fake_w3, wallet):
    return FakeGate(fake_w3, wallet=wallet)


@pytest.fixture
def read_only_gate(fake_w3):
    return FakeGate(fake_w3)


@pytest.fixture
def sleeps():
    """Delays requested by the retry helper, instead of real sleeping."""
    return []


@pytest.fixture
def reader(settings, gate, sleeps):
    return ResilientReader(settings, gate, sleep=sleeps.append)


@pytest.fixture
def session(gate):
    return WalletSession(gate)


@pytest.fixture
def submitter(settings, gate, session):
    return TransactionSubmitter(settings, gate, session)


@pytest.fixture
def registry(settings, reader, ledger):
    return MeetingRegistry(settings, reader, clock=lambda: ledger.now)


@pytest.fixture
def checkins(reader, submitter):
    return CheckInCoordinator(reader, submitter)


@pytest.fixture
def lifecycle(reader, submitter):
    return MeetingLifecycleController(reader, submitter)


@pytest.fixture
def services(settings, gate, session, reader, submitter, registry, checkins, lifecycle):
    return LedgerServices(
        settings=settings,
        gate=gate,
        session=session,
        reader=reader,
        submitter=submitter,
        registry=registry,
        checkins=checkins,
        meetings=lifecycle,
    )


@pytest.fixture
def read_only_services(settings, read_only_gate, sleeps, ledger):
    reader = ResilientReader(settings, read_only_gate, sleep=sleeps.append)
    session = WalletSession(read_only_gate)
    submitter = TransactionSubmitter(settings, read_only_gate, session)
    return LedgerServices(
        settings=settings,
        gate=read_only_gate,
        session=session,
        reader=reader,
        submitter=submitter,
        registry=MeetingRegistry(settings, reader, clock=lambda: ledger.now),
        checkins=CheckInCoordinator(reader, submitter),
        meetings=MeetingLifecycleController(reader, submitter),
    )


@pytest.fixture
def client(services):
    """Test client wired to the fake ledger with a signing wallet."""
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def read_only_client(read_only_services):
    """Test client without any signing capability."""
    app.dependency_overrides[get_services] = lambda: read_only_services
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def seeded_ledger(ledger):
    """
    Four meetings:
        1 Standup       active, 2/5
        2 Retro         ended after 30 minutes, 3/3
        3 Planning      active, 4/10
        4 Demo          active, 0/2
    """
    ledger.add_meeting(title="Standup", max_participants=5, participants=2)
    ledger.add_meeting(title="Retro", max_participants=3, participants=3, ended=True, duration=1800)
    ledger.add_meeting(title="Planning", max_participants=10, participants=4)
    ledger.add_meeting(title="Demo", max_participants=2)
    ledger.now = START + 3600
    return ledger
