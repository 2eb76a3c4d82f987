from __future__ import annotations
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from storefront.core.errors import ValidationError


class InvalidTransition(ValidationError):
    default_message = "Invalid status transition"


HistoryEntry = Dict[str, Any]


class StateMachine:
    """
    Small, generic state machine with:
      - a closed set of states
      - an optional allowed transitions map (None means any state may follow any other)
      - history entry creation (with actor / comment)

    Re-applying the current state is always accepted; callers use that to attach
    a comment or tracking number without moving the order.

    Usage:
      sm = StateMachine(state="pending", states=ORDER_STATUSES, allowed_transitions=FORWARD_ONLY)
      entry = sm.apply("shipped", actor=admin_id, comment="left the warehouse")
      order.status = sm.state
    """

    def __init__(self, state: str, states: List[str],
                 allowed_transitions: Optional[Dict[str, List[str]]] = None):
        self.state = state or ""
        self.states = list(states)
        self.allowed_transitions = allowed_transitions

    def can_transition(self, to_state: str) -> bool:
        if to_state not in self.states:
            return False
        if to_state == self.state or self.allowed_transitions is None:
            return True
        return to_state in self.allowed_transitions.get(self.state, [])

    def apply(self, to_state: str, actor: Optional[str] = None, comment: Optional[str] = None) -> HistoryEntry:
        """
        Move to `to_state`. Raises InvalidTransition for unknown states or disallowed moves.
        Returns the history entry describing the change.
        """
        to_state = (to_state or "").strip().lower()
        if not to_state:
            raise InvalidTransition("Status is required")
        if to_state not in self.states:
            raise InvalidTransition("Invalid status", details={"status": to_state, "allowed": self.states})
        if not self.can_transition(to_state):
            raise InvalidTransition(f"Invalid transition: {self.state} -> {to_state}")

        entry: HistoryEntry = {
            "from": self.state,
            "status": to_state,
            "comment": comment,
            "updated_by": actor,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        self.state = to_state
        return entry
