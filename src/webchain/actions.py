"""Queued actions and the immutable queue that orders them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator


@dataclass(frozen=True)
class Action:
    """One automation step: an operation and the arguments it was queued with.

    The operation is awaited as ``operation(chain, *args)``; it finishes the
    step by returning, or reports failure by raising.
    """

    name: str
    operation: Callable[..., Awaitable[Any]]
    args: tuple[Any, ...] = ()

    def describe(self) -> str:
        shown = ", ".join(repr(a) for a in self.args if not callable(a))
        return f"{self.name}({shown})"


@dataclass(frozen=True)
class ActionQueue:
    """An ordered sequence of actions. Every change returns a new queue."""

    actions: tuple[Action, ...] = ()

    def __len__(self) -> int:
        return len(self.actions)

    def __iter__(self) -> Iterator[Action]:
        return iter(self.actions)

    def append(self, action: Action) -> "ActionQueue":
        return ActionQueue(self.actions + (action,))

    def then(self, other: "ActionQueue") -> "ActionQueue":
        """This queue's actions followed by ``other``'s."""
        return ActionQueue(self.actions + other.actions)

    def pop(self) -> tuple[Action | None, "ActionQueue"]:
        """Split off the head. Returns ``(None, self)`` when empty."""
        if not self.actions:
            return None, self
        return self.actions[0], ActionQueue(self.actions[1:])
