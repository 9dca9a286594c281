"""Selection and workflow state for the active map entity.

At most one entity is active at a time. Every command either performs one of
the transitions below or raises ``InvalidTransitionError`` and leaves the
state untouched::

    Idle --select--> Viewing
    Viewing --close--> Idle
    Viewing --request_action--> RequestingAction   (available animals only)
    Viewing --give_feedback--> SubmittingFeedback  (animals only)
    RequestingAction|SubmittingFeedback --cancel--> Viewing
    RequestingAction|SubmittingFeedback --submit--> Idle   (on success)

Selecting while not idle resets to Idle first, dropping any pending workflow
without submitting it.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from .errors import DataSourceError, InvalidTransitionError, PayloadError
from .models import AnimalRecord, DiscoverableEntity, SubmissionResult
from .payloads import validate_payload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    name = "idle"

    @property
    def entity(self) -> None:
        return None


@dataclass(frozen=True)
class Viewing:
    entity: DiscoverableEntity
    name = "viewing"


@dataclass(frozen=True)
class RequestingAction:
    entity: AnimalRecord
    name = "requesting_action"


@dataclass(frozen=True)
class SubmittingFeedback:
    entity: AnimalRecord
    name = "submitting_feedback"


SelectionState = Union[Idle, Viewing, RequestingAction, SubmittingFeedback]

IDLE = Idle()

WORKFLOW_KINDS = {
    RequestingAction: "walk_request",
    SubmittingFeedback: "dog_review",
}


@dataclass(frozen=True)
class WorkflowSubmissionFailed:
    reason: str
    state: SelectionState


SubmitWorkflow = Callable[[str, Dict[str, Any]], SubmissionResult]
Listener = Callable[[SelectionState], None]


class SelectionMachine:
    def __init__(self, submit_workflow: SubmitWorkflow) -> None:
        self._submit_workflow = submit_workflow
        self._state: SelectionState = IDLE
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self._submitting = False

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def active_entity(self) -> Optional[DiscoverableEntity]:
        return self._state.entity

    @property
    def submitting(self) -> bool:
        return self._submitting

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def select(self, entity: DiscoverableEntity) -> SelectionState:
        if not isinstance(self._state, Idle):
            logger.debug(
                "Selecting %s while %s; discarding %s",
                entity.id,
                self._state.name,
                self._state.entity.id,
            )
            self._set(IDLE)
        return self._set(Viewing(entity))

    def close(self) -> SelectionState:
        self._require(Viewing, "close")
        return self._set(IDLE)

    def request_action(self) -> SelectionState:
        entity = self._require(Viewing, "request_action").entity
        if not isinstance(entity, AnimalRecord):
            raise InvalidTransitionError("Only animals accept walk requests")
        if not entity.is_available:
            raise InvalidTransitionError(f"Animal {entity.id} is not available for walks")
        return self._set(RequestingAction(entity))

    def give_feedback(self) -> SelectionState:
        entity = self._require(Viewing, "give_feedback").entity
        if not isinstance(entity, AnimalRecord):
            raise InvalidTransitionError("Only animals accept reviews")
        return self._set(SubmittingFeedback(entity))

    def cancel(self) -> SelectionState:
        state = self._require((RequestingAction, SubmittingFeedback), "cancel")
        return self._set(Viewing(state.entity))

    def submit(self, payload: Any) -> Optional[WorkflowSubmissionFailed]:
        """Submit the pending workflow.

        Returns None on success (the state becomes Idle). On any failure the
        workflow state is kept so the user's input is not lost, and the
        failure is returned rather than raised.
        """
        state = self._require((RequestingAction, SubmittingFeedback), "submit")
        kind = WORKFLOW_KINDS[type(state)]

        with self._lock:
            if self._submitting:
                return WorkflowSubmissionFailed("submission_in_progress", state)
            self._submitting = True

        try:
            try:
                validate_payload(payload, kind)
                if str(payload.dog_id) != str(state.entity.id):
                    raise PayloadError(
                        f"Payload is for {payload.dog_id}, active animal is {state.entity.id}"
                    )
                row = payload.to_row()
            except (PayloadError, AttributeError, KeyError, TypeError) as exc:
                return WorkflowSubmissionFailed(f"invalid_payload: {exc}", state)

            try:
                result = self._submit_workflow(kind, row)
            except DataSourceError as exc:
                result = SubmissionResult(ok=False, reason=str(exc))
        finally:
            with self._lock:
                self._submitting = False

        if not result.ok:
            reason = result.reason or "submission_failed"
            logger.warning("Submitting %s for %s failed: %s", kind, state.entity.id, reason)
            return WorkflowSubmissionFailed(reason, self._state)

        logger.info("Submitted %s for %s", kind, state.entity.id)
        if self._state == state:
            self._set(IDLE)
        return None

    def _require(self, expected, command: str):
        if not isinstance(self._state, expected):
            raise InvalidTransitionError(f"Cannot {command} while {self._state.name}")
        return self._state

    def _set(self, state: SelectionState) -> SelectionState:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
        return state
