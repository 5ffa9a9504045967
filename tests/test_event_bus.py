from changescribe.errors import ErrorKind
from changescribe.event_bus import EventBus, ScribeEvent
from changescribe.models import RunState


def test_event_bus_delivers_transitions():
    bus = EventBus()
    received: list[ScribeEvent] = []
    bus.subscribe(received.append)

    event = bus.emit(ScribeEvent(
        branch="feature/login",
        from_state=RunState.COLLECTING,
        to_state=RunState.CLASSIFYING,
    ))

    assert received == [event]
    assert event.to_state is RunState.CLASSIFYING
    assert not event.terminal
    assert event.event_id and event.timestamp
    assert event.describe() == "feature/login: collecting → classifying"


def test_failure_event_carries_its_error_kind():
    event = ScribeEvent(
        branch="main",
        from_state=RunState.COLLECTING,
        to_state=RunState.FAILED,
        error_kind=ErrorKind.INVALID_BRANCH_STATE,
    )

    assert event.terminal
    assert event.describe() == "main: collecting → failed (invalid_branch_state)"


def test_first_transition_starts_from_nothing():
    event = ScribeEvent(to_state=RunState.COLLECTING)

    assert event.describe() == "?: start → collecting"


def test_failing_subscriber_does_not_block_others():
    bus = EventBus()
    received: list[RunState] = []

    def broken(event: ScribeEvent):
        raise OSError("disk full")

    bus.subscribe(broken)
    bus.subscribe(lambda event: received.append(event.to_state))

    bus.emit(ScribeEvent(to_state=RunState.SUBMITTED, url="https://github.com/acme/app/pull/1"))

    assert received == [RunState.SUBMITTED]


def test_buses_do_not_share_subscribers():
    first, second = EventBus(), EventBus()
    seen: list[ScribeEvent] = []
    first.subscribe(seen.append)

    second.emit(ScribeEvent(to_state=RunState.COLLECTING))

    assert seen == []
