"""
Order status state machine.

    pending -> confirmed -> preparing -> ready -> picked_up

Every non-terminal status may also move to ``cancelled``. ``picked_up`` and
``cancelled`` are terminal. No status may be skipped, so a stale client cannot
jump an order past work that has not happened yet.

Everything here is a static lookup with no I/O.
"""

from typing import Dict, FrozenSet, Optional

from orderflow.models.order import OrderStatus


TRANSITIONS: Dict[Optional[OrderStatus], FrozenSet[OrderStatus]] = {
    None: frozenset({OrderStatus.PENDING}),
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.PICKED_UP, OrderStatus.CANCELLED}),
    OrderStatus.PICKED_UP: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TIMESTAMP_FIELDS: Dict[OrderStatus, str] = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.PREPARING: "started_preparing_at",
    OrderStatus.READY: "ready_at",
    OrderStatus.PICKED_UP: "picked_up_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

NORMAL_FLOW: Dict[OrderStatus, Optional[OrderStatus]] = {
    OrderStatus.PENDING: OrderStatus.CONFIRMED,
    OrderStatus.CONFIRMED: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.PICKED_UP,
    OrderStatus.PICKED_UP: None,
    OrderStatus.CANCELLED: None,
}

TERMINAL_STATUSES = frozenset({OrderStatus.PICKED_UP, OrderStatus.CANCELLED})


def parse_status(value) -> Optional[OrderStatus]:
    """Coerce a raw value to an OrderStatus, or None if it is not one"""
    if value is None:
        return None
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def is_transition_allowed(from_status, to_status) -> bool:
    """
    Check a move from ``from_status`` to ``to_status``.

    ``from_status=None`` is the creation event, which may only produce
    ``pending``. Unknown status strings are never allowed.
    """
    target = parse_status(to_status)
    if target is None:
        return False

    if from_status is None:
        return target in TRANSITIONS[None]

    source = parse_status(from_status)
    if source is None:
        return False

    return target in TRANSITIONS[source]


def allowed_transitions(from_status) -> FrozenSet[OrderStatus]:
    """Statuses reachable in one step; empty for terminal or unknown statuses"""
    source = parse_status(from_status)
    if source is None:
        return frozenset()
    return TRANSITIONS[source]


def timestamp_field_for(status) -> Optional[str]:
    """Order column stamped when an order enters ``status``"""
    target = parse_status(status)
    if target is None:
        return None
    return TIMESTAMP_FIELDS.get(target)


def is_terminal_status(status) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def next_normal_status(status) -> Optional[OrderStatus]:
    """Next step along the happy path, None once terminal"""
    source = parse_status(status)
    if source is None:
        return None
    return NORMAL_FLOW[source]
