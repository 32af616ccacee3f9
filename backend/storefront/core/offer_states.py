"""
Offer negotiation state machine.

Shared by the API (which enforces it) and the client (which uses it to decide
which actions to offer and to reject impossible requests before they are sent).

    pending   -> countered | accepted | rejected
    countered -> countered | accepted | rejected
    accepted, rejected: terminal
"""
import enum
from typing import Dict, FrozenSet, Optional


class OfferStatus(str, enum.Enum):
    PENDING = "pending"
    COUNTERED = "countered"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class OfferAction(str, enum.Enum):
    COUNTER = "counter"
    ACCEPT = "accept"
    REJECT = "reject"


class OfferRole(str, enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"


ACTIVE_STATUSES: FrozenSet[OfferStatus] = frozenset({OfferStatus.PENDING, OfferStatus.COUNTERED})
TERMINAL_STATUSES: FrozenSet[OfferStatus] = frozenset({OfferStatus.ACCEPTED, OfferStatus.REJECTED})

TRANSITIONS: Dict[OfferStatus, FrozenSet[OfferStatus]] = {
    OfferStatus.PENDING: frozenset({OfferStatus.COUNTERED, OfferStatus.ACCEPTED, OfferStatus.REJECTED}),
    OfferStatus.COUNTERED: frozenset({OfferStatus.COUNTERED, OfferStatus.ACCEPTED, OfferStatus.REJECTED}),
    OfferStatus.ACCEPTED: frozenset(),
    OfferStatus.REJECTED: frozenset(),
}

ACTION_TARGETS: Dict[OfferAction, OfferStatus] = {
    OfferAction.COUNTER: OfferStatus.COUNTERED,
    OfferAction.ACCEPT: OfferStatus.ACCEPTED,
    OfferAction.REJECT: OfferStatus.REJECTED,
}

# Which statuses each party may act from
PERMISSIONS: Dict[OfferRole, Dict[OfferAction, FrozenSet[OfferStatus]]] = {
    OfferRole.SELLER: {
        OfferAction.COUNTER: ACTIVE_STATUSES,
        OfferAction.ACCEPT: ACTIVE_STATUSES,
        OfferAction.REJECT: ACTIVE_STATUSES,
    },
    OfferRole.BUYER: {
        OfferAction.COUNTER: frozenset(),
        OfferAction.ACCEPT: frozenset({OfferStatus.COUNTERED}),
        OfferAction.REJECT: ACTIVE_STATUSES,
    },
}


class InvalidTransition(Exception):
    """Raised when an action is not allowed from the offer's current status."""

    def __init__(self, status, action, role: Optional[OfferRole] = None):
        self.status = OfferStatus(status)
        self.action = OfferAction(action)
        self.role = role
        super().__init__(self.describe())

    def describe(self) -> str:
        if self.status == OfferStatus.ACCEPTED:
            return "Offer has already been accepted" if self.action == OfferAction.ACCEPT \
                else f"Cannot {self.action.value} an accepted offer"
        if self.status == OfferStatus.REJECTED:
            return "Offer has already been rejected" if self.action == OfferAction.REJECT \
                else f"Cannot {self.action.value} a rejected offer"
        if self.role is not None:
            return f"The {self.role.value} cannot {self.action.value} an offer that is {self.status.value}"
        return f"Cannot {self.action.value} an offer that is {self.status.value}"


def is_active(status) -> bool:
    return OfferStatus(status) in ACTIVE_STATUSES


def is_terminal(status) -> bool:
    return OfferStatus(status) in TERMINAL_STATUSES


def can_transition(current, target) -> bool:
    return OfferStatus(target) in TRANSITIONS[OfferStatus(current)]


def can_perform(status, action, role) -> bool:
    status, action, role = OfferStatus(status), OfferAction(action), OfferRole(role)
    return status in PERMISSIONS[role][action] and can_transition(status, ACTION_TARGETS[action])


def allowed_actions(status, role) -> FrozenSet[OfferAction]:
    return frozenset(action for action in OfferAction if can_perform(status, action, role))


def next_status(status, action, role=None) -> OfferStatus:
    """
    Return the status an action leads to, or raise InvalidTransition.
    Without a role only the graph itself is checked.
    """
    status, action = OfferStatus(status), OfferAction(action)
    target = ACTION_TARGETS[action]
    if role is None:
        if not can_transition(status, target):
            raise InvalidTransition(status, action)
        return target

    role = OfferRole(role)
    if not can_perform(status, action, role):
        raise InvalidTransition(status, action, role)
    return target
