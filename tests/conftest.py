import pytest

from helpers.fakes import FakeClock, InMemoryCaseStore, RecordingSink
from triage_core.engine import RuleEngine
from triage_core.notifications import SupervisorNotifier
from triage_core.policy import EscalationPolicyTable
from triage_core.queue import ValidationQueue
from triage_core.roster import StaticSupervisorRoster
from triage_core.scheduler import EscalationScheduler


@pytest.fixture(scope="session")
def engine():
    return RuleEngine()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryCaseStore(clock)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def notifier(sink, clock):
    return SupervisorNotifier(sink, clock=clock)


@pytest.fixture
def queue(store, clock):
    return ValidationQueue(store, clock=clock)


@pytest.fixture
def policies():
    return EscalationPolicyTable.default()


@pytest.fixture
def roster():
    # Nobody available unless a test says otherwise
    return StaticSupervisorRoster()


@pytest.fixture
def scheduler(store, queue, policies, notifier, roster, clock):
    return EscalationScheduler(store, queue, policies, notifier, roster, clock=clock)
