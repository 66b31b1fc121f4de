"""Status lifecycles for the workflow entities.

Each table maps ``(current_state, action)`` to the next state. Handlers
call :meth:`StateMachine.apply` instead of comparing status strings, so an
action that is not valid from the current state is rejected uniformly.
"""
import logging
from typing import Dict, List, Tuple

from vidhanto.models import (
    AppointmentStatus,
    DocumentStatus,
    ESignatureStatus,
    EStampStatus,
)

logger = logging.getLogger(__name__)


class InvalidTransition(Exception):
    def __init__(self, entity: str, state, action: str):
        self.entity = entity
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action.replace('_', ' ')} {entity} in status '{_value(state)}'")


class StateMachine:
    def __init__(self, name: str, transitions: Dict[Tuple[str, str], str]):
        self.name = name
        self.transitions = transitions

    def can(self, state, action: str) -> bool:
        return (_value(state), action) in self.transitions

    def next_state(self, state, action: str):
        try:
            return self.transitions[(_value(state), action)]
        except KeyError:
            raise InvalidTransition(self.name, state, action) from None

    def allowed_actions(self, state) -> List[str]:
        return sorted({action for (source, action) in self.transitions if source == _value(state)})

    def apply(self, entity, action: str):
        current = entity.status
        target = self.next_state(current, action)
        entity.status = target
        logger.info(
            "status transition",
            extra={
                "entity": self.name,
                "entity_id": entity.id,
                "from_state": _value(current),
                "action": action,
                "to_state": target.value,
            },
        )
        return target


def _value(state):
    return getattr(state, "value", state)


def _table(rows):
    table = {}
    for sources, action, target in rows:
        for source in sources:
            table[(source.value, action)] = source if target is None else target
    return table


A = AppointmentStatus
APPOINTMENT_WORKFLOW = StateMachine("appointment", _table([
    ((A.PENDING, A.CONFIRMED), "update", None),
    ((A.PENDING,), "confirm", A.CONFIRMED),
    ((A.CONFIRMED,), "complete", A.COMPLETED),
    ((A.PENDING, A.CONFIRMED), "cancel", A.CANCELLED),
    ((A.CONFIRMED,), "no_show", A.NO_SHOW),
]))

D = DocumentStatus
DOCUMENT_WORKFLOW = StateMachine("document", _table([
    ((D.DRAFT, D.PENDING_REVIEW, D.NEEDS_REVISION), "update", None),
    ((D.DRAFT, D.PENDING_REVIEW, D.NEEDS_REVISION, D.REJECTED), "submit_for_review", D.UNDER_REVIEW),
    ((D.UNDER_REVIEW,), "approve", D.APPROVED),
    ((D.UNDER_REVIEW,), "reject", D.REJECTED),
    ((D.UNDER_REVIEW,), "request_revision", D.NEEDS_REVISION),
    ((D.DRAFT, D.PENDING_REVIEW, D.APPROVED, D.COMPLETED), "sign", D.COMPLETED),
    ((D.DRAFT, D.PENDING_REVIEW, D.NEEDS_REVISION, D.REJECTED), "cancel", D.CANCELLED),
]))

S = ESignatureStatus
ESIGNATURE_WORKFLOW = StateMachine("esignature", _table([
    ((S.DRAFT, S.SENT), "send", S.SENT),
    ((S.DRAFT, S.SENT, S.IN_PROGRESS), "sign", S.IN_PROGRESS),
    ((S.IN_PROGRESS,), "complete", S.COMPLETED),
    ((S.DRAFT, S.SENT, S.IN_PROGRESS), "cancel", S.CANCELLED),
]))

E = EStampStatus
ESTAMP_WORKFLOW = StateMachine("estamp", _table([
    ((E.DRAFT, E.PAYMENT_PENDING), "initiate_payment", E.PAYMENT_PENDING),
    ((E.PAYMENT_PENDING,), "verify_payment", E.STAMPED),
    ((E.STAMPED,), "complete", E.COMPLETED),
    ((E.DRAFT, E.PAYMENT_PENDING), "cancel", E.CANCELLED),
]))
