from __future__ import annotations

from .state_schema import OrderDraft


def build_transition_trace(
    draft: OrderDraft,
    *,
    action: str,
    accepted: bool,
    reason: str | None = None,
    since: int = 0,
) -> dict:
    """Build trace strictly from the draft's audit log. ``since`` skips entries already reported."""
    return {
        "action": action,
        "accepted": accepted,
        "reason": reason,
        "step": draft.current_step.name.lower(),
        "variables_used": list(draft.variables_used[since:]),
        "value_updates": list(draft.value_updates[since:]),
    }
