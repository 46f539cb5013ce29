"""Registry of actions the backend currently reports as active."""

from __future__ import annotations

from collections.abc import Iterable

from .models import Action, ActionType


class ActionRegistry:
    """Mapping of action id to :class:`Action`, rebuilt from each snapshot.

    ``reconcile`` replaces the whole content, so an action vanishes as soon
    as the backend stops reporting it. Several actions of one type may be
    present at once.
    """

    def __init__(self) -> None:
        self._actions: dict[str, Action] = {}

    def reconcile(self, snapshot: Iterable[Action]) -> None:
        self._actions = {action.id: action for action in snapshot}

    def is_running(self, action_type: ActionType | str) -> bool:
        wanted = str(action_type)
        return any(str(action.type) == wanted for action in self._actions.values())

    def count(self) -> int:
        return len(self._actions)

    def actions(self) -> tuple[Action, ...]:
        return tuple(self._actions.values())

    def get(self, action_id: str) -> Action | None:
        return self._actions.get(action_id)

    def running_types(self) -> set[str]:
        return {str(action.type) for action in self._actions.values()}

    def __contains__(self, action_id: object) -> bool:
        return action_id in self._actions

    def __len__(self) -> int:
        return len(self._actions)


__all__ = ["ActionRegistry"]
