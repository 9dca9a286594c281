import threading
from datetime import datetime, timezone

import pytest

from dogmap.errors import DataSourceError, InvalidTransitionError
from dogmap.models import AnimalRecord, Coordinate, EmergencyRecord, SubmissionResult
from dogmap.payloads import DogReview, WalkRequest, build_dog_review, build_walk_request
from dogmap.selection import (
    IDLE,
    Idle,
    RequestingAction,
    SelectionMachine,
    SubmittingFeedback,
    Viewing,
    WorkflowSubmissionFailed,
)

WHEN = datetime(2026, 5, 1, 9, 30, tzinfo=timezone.utc)

REX = AnimalRecord(id="rex", coordinate=Coordinate(40.0, -74.0), is_available=True)
LUNA = AnimalRecord(id="luna", coordinate=Coordinate(40.1, -74.0), is_available=False)
FLOOD = EmergencyRecord(id="e1", coordinate=Coordinate(40.2, -74.0))


class FakeSubmitter:
    def __init__(self, result=None, error=None):
        self.result = result if result is not None else SubmissionResult(ok=True)
        self.error = error
        self.calls = []

    def __call__(self, kind, row):
        self.calls.append((kind, row))
        if self.error is not None:
            raise self.error
        return self.result


def test_select_and_close():
    machine = SelectionMachine(FakeSubmitter())
    assert machine.state == IDLE
    assert machine.active_entity is None

    assert machine.select(REX) == Viewing(REX)
    assert machine.active_entity == REX

    assert machine.close() == IDLE


def test_request_action_then_cancel():
    machine = SelectionMachine(FakeSubmitter())
    machine.select(REX)

    assert machine.request_action() == RequestingAction(REX)
    assert machine.cancel() == Viewing(REX)


def test_give_feedback_then_cancel():
    machine = SelectionMachine(FakeSubmitter())
    machine.select(LUNA)

    assert machine.give_feedback() == SubmittingFeedback(LUNA)
    assert machine.cancel() == Viewing(LUNA)


def test_unavailable_animal_cannot_be_requested():
    machine = SelectionMachine(FakeSubmitter())
    machine.select(LUNA)
    with pytest.raises(InvalidTransitionError):
        machine.request_action()
    assert machine.state == Viewing(LUNA)


def test_emergency_accepts_no_workflow():
    machine = SelectionMachine(FakeSubmitter())
    machine.select(FLOOD)
    with pytest.raises(InvalidTransitionError):
        machine.request_action()
    with pytest.raises(InvalidTransitionError):
        machine.give_feedback()
    assert machine.state == Viewing(FLOOD)


@pytest.mark.parametrize("command", ["close", "request_action", "give_feedback", "cancel"])
def test_commands_from_idle_are_rejected(command):
    machine = SelectionMachine(FakeSubmitter())
    with pytest.raises(InvalidTransitionError):
        getattr(machine, command)()
    assert isinstance(machine.state, Idle)


def test_submit_outside_workflow_is_rejected():
    machine = SelectionMachine(FakeSubmitter())
    machine.select(REX)
    with pytest.raises(InvalidTransitionError):
        machine.submit(build_walk_request("rex", WHEN))


def test_selecting_another_entity_discards_pending_workflow():
    submitter = FakeSubmitter()
    machine = SelectionMachine(submitter)
    seen = []
    machine.subscribe(seen.append)

    machine.select(REX)
    machine.request_action()
    state = machine.select(FLOOD)

    assert state == Viewing(FLOOD)
    assert submitter.calls == []
    assert seen == [Viewing(REX), RequestingAction(REX), IDLE, Viewing(FLOOD)]


def test_successful_walk_request_returns_to_idle():
    submitter = FakeSubmitter()
    machine = SelectionMachine(submitter)
    machine.select(REX)
    machine.request_action()

    failure = machine.submit(build_walk_request("rex", WHEN, duration=45))

    assert failure is None
    assert machine.state == IDLE
    kind, row = submitter.calls[0]
    assert kind == "walk_request"
    assert row["dog_id"] == "rex"
    assert row["duration_minutes"] == 45


def test_successful_review_returns_to_idle():
    submitter = FakeSubmitter()
    machine = SelectionMachine(submitter)
    machine.select(LUNA)
    machine.give_feedback()

    assert machine.submit(build_dog_review("luna", "Sweet", "Shy at first", rating=4)) is None
    assert machine.state == IDLE
    assert submitter.calls[0][0] == "dog_review"


def test_failed_submission_keeps_workflow_state():
    submitter = FakeSubmitter(result=SubmissionResult(ok=False, reason="http_500"))
    machine = SelectionMachine(submitter)
    machine.select(REX)
    machine.request_action()

    failure = machine.submit(build_walk_request("rex", WHEN))

    assert failure == WorkflowSubmissionFailed("http_500", RequestingAction(REX))
    assert machine.state == RequestingAction(REX)
    assert machine.submitting is False


def test_data_source_error_is_reported_not_raised():
    submitter = FakeSubmitter(error=DataSourceError("unreachable"))
    machine = SelectionMachine(submitter)
    machine.select(REX)
    machine.give_feedback()

    failure = machine.submit(build_dog_review("rex", "t", "c"))

    assert isinstance(failure, WorkflowSubmissionFailed)
    assert failure.reason == "unreachable"
    assert machine.state == SubmittingFeedback(REX)


def test_wrong_payload_is_rejected_without_submitting():
    submitter = FakeSubmitter()
    machine = SelectionMachine(submitter)
    machine.select(REX)
    machine.request_action()

    wrong_kind = machine.submit(build_dog_review("rex", "t", "c"))
    wrong_dog = machine.submit(build_walk_request("luna", WHEN))

    assert wrong_kind.reason.startswith("invalid_payload")
    assert wrong_dog.reason.startswith("invalid_payload")
    assert submitter.calls == []
    assert machine.state == RequestingAction(REX)


def test_second_submit_while_in_flight_is_refused():
    entered = threading.Event()
    release = threading.Event()
    results = []

    def slow_submit(kind, row):
        entered.set()
        release.wait(timeout=5)
        return SubmissionResult(ok=True)

    machine = SelectionMachine(slow_submit)
    machine.select(REX)
    machine.request_action()
    payload = build_walk_request("rex", WHEN)

    worker = threading.Thread(target=lambda: results.append(machine.submit(payload)))
    worker.start()
    assert entered.wait(timeout=5)

    second = machine.submit(payload)
    release.set()
    worker.join(timeout=5)

    assert second.reason == "submission_in_progress"
    assert results == [None]
    assert machine.state == IDLE


def test_unsubscribe_stops_notifications():
    machine = SelectionMachine(FakeSubmitter())
    seen = []
    unsubscribe = machine.subscribe(seen.append)
    machine.select(REX)
    unsubscribe()
    machine.close()
    assert seen == [Viewing(REX)]


def test_directly_built_review_fills_category_defaults():
    submitter = FakeSubmitter()
    machine = SelectionMachine(submitter)
    machine.select(REX)
    machine.give_feedback()

    assert machine.submit(DogReview(dog_id="rex", title="t", comment="c")) is None

    kind, row = submitter.calls[0]
    assert kind == "dog_review"
    assert row["behavior_rating"] == 5
    assert row["obedience_rating"] == 5
    assert machine.state == IDLE


@pytest.mark.parametrize(
    "payload",
    [
        WalkRequest(dog_id="rex", scheduled_time=WHEN, duration=7),
        WalkRequest(dog_id="rex", scheduled_time=WHEN, route="moon"),
        WalkRequest(dog_id="rex", scheduled_time="tomorrow"),
    ],
)
def test_directly_built_invalid_walk_request_is_not_sent(payload):
    submitter = FakeSubmitter()
    machine = SelectionMachine(submitter)
    machine.select(REX)
    machine.request_action()

    failure = machine.submit(payload)

    assert failure.reason.startswith("invalid_payload")
    assert failure.state == RequestingAction(REX)
    assert submitter.calls == []
    assert machine.state == RequestingAction(REX)


@pytest.mark.parametrize(
    "payload",
    [
        DogReview(dog_id="rex", title="t", comment="c", rating=0),
        DogReview(dog_id="rex", title="  ", comment="c"),
        DogReview(dog_id="rex", title="t", comment="c", categories={"energy": 6}),
        DogReview(dog_id="rex", title="t", comment="c", categories={"cuteness": 3}),
    ],
)
def test_directly_built_invalid_review_is_not_sent(payload):
    submitter = FakeSubmitter()
    machine = SelectionMachine(submitter)
    machine.select(REX)
    machine.give_feedback()

    failure = machine.submit(payload)

    assert isinstance(failure, WorkflowSubmissionFailed)
    assert failure.reason.startswith("invalid_payload")
    assert submitter.calls == []
    assert machine.state == SubmittingFeedback(REX)
