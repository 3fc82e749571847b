"""
services/booking/state_machine.py
Paired slot / appointment automaton.

    Event            Appointment              Slot
    create_slot      -                        - → available
    request_session  (new) → pending          available → pending
    accept           pending → accepted       pending → booked
    decline          pending → declined       pending → available
    complete         accepted → completed     unchanged
    admin_cancel     pending|accepted → declined   any → available

Every lifecycle operation looks its transition up here; no other
module compares status values to decide what is allowed.
"""

from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import FrozenSet, Optional

from shared.models.models import AppointmentStatus, SlotStatus
from shared.utils.exceptions import ConflictError, ValidationError


class LifecycleEvent(str, PyEnum):
    CREATE_SLOT = "create_slot"
    REQUEST_SESSION = "request_session"
    ACCEPT = "accept"
    DECLINE = "decline"
    COMPLETE = "complete"
    ADMIN_CANCEL = "admin_cancel"


@dataclass(frozen=True)
class Transition:
    event: LifecycleEvent
    # Empty means the event creates the row.
    appointment_from: FrozenSet[AppointmentStatus]
    appointment_to: Optional[AppointmentStatus]
    slot_from: FrozenSet[SlotStatus]
    # None leaves the slot untouched.
    slot_to: Optional[SlotStatus]


ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.ACCEPTED})

TRANSITIONS = {
    LifecycleEvent.CREATE_SLOT: Transition(
        event=LifecycleEvent.CREATE_SLOT,
        appointment_from=frozenset(),
        appointment_to=None,
        slot_from=frozenset(),
        slot_to=SlotStatus.AVAILABLE,
    ),
    LifecycleEvent.REQUEST_SESSION: Transition(
        event=LifecycleEvent.REQUEST_SESSION,
        appointment_from=frozenset(),
        appointment_to=AppointmentStatus.PENDING,
        slot_from=frozenset({SlotStatus.AVAILABLE}),
        slot_to=SlotStatus.PENDING,
    ),
    LifecycleEvent.ACCEPT: Transition(
        event=LifecycleEvent.ACCEPT,
        appointment_from=frozenset({AppointmentStatus.PENDING}),
        appointment_to=AppointmentStatus.ACCEPTED,
        slot_from=frozenset({SlotStatus.PENDING}),
        slot_to=SlotStatus.BOOKED,
    ),
    LifecycleEvent.DECLINE: Transition(
        event=LifecycleEvent.DECLINE,
        appointment_from=frozenset({AppointmentStatus.PENDING}),
        appointment_to=AppointmentStatus.DECLINED,
        slot_from=frozenset({SlotStatus.PENDING}),
        slot_to=SlotStatus.AVAILABLE,
    ),
    LifecycleEvent.COMPLETE: Transition(
        event=LifecycleEvent.COMPLETE,
        appointment_from=frozenset({AppointmentStatus.ACCEPTED}),
        appointment_to=AppointmentStatus.COMPLETED,
        slot_from=frozenset({SlotStatus.BOOKED}),
        slot_to=None,
    ),
    LifecycleEvent.ADMIN_CANCEL: Transition(
        event=LifecycleEvent.ADMIN_CANCEL,
        appointment_from=ACTIVE_STATUSES,
        appointment_to=AppointmentStatus.DECLINED,
        slot_from=frozenset({SlotStatus.PENDING, SlotStatus.BOOKED}),
        slot_to=SlotStatus.AVAILABLE,
    ),
}

# Statuses a tutor may move an appointment to.
_STATUS_EVENTS = {
    AppointmentStatus.ACCEPTED: LifecycleEvent.ACCEPT,
    AppointmentStatus.DECLINED: LifecycleEvent.DECLINE,
    AppointmentStatus.COMPLETED: LifecycleEvent.COMPLETE,
}


def transition_for(event: LifecycleEvent) -> Transition:
    return TRANSITIONS[event]


def event_for_status(new_status) -> LifecycleEvent:
    """Map a requested appointment status to the tutor event that produces it."""
    try:
        return _STATUS_EVENTS[AppointmentStatus(new_status)]
    except (KeyError, ValueError):
        allowed = ", ".join(s.value for s in _STATUS_EVENTS)
        raise ValidationError(
            f"Invalid status '{getattr(new_status, 'value', new_status)}'. Expected one of: {allowed}",
            details={"status": str(getattr(new_status, "value", new_status))},
        ) from None


def check_transition(event: LifecycleEvent, current: AppointmentStatus) -> Transition:
    """
    Return the transition for `event` if the appointment may take it
    from `current`, else raise ConflictError naming expected vs actual.
    """
    transition = transition_for(event)
    if current not in transition.appointment_from:
        expected = sorted(s.value for s in transition.appointment_from)
        message = (
            "not cancellable"
            if event == LifecycleEvent.ADMIN_CANCEL
            else f"Cannot {event.value.replace('_', ' ')} an appointment that is {current.value}"
        )
        raise ConflictError(
            message,
            details={"event": event.value, "expected": expected, "actual": current.value},
        )
    return transition

