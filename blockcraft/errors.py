"""
Error types for Blockcraft.

Strategies raise these internally; the public entry points of the
converter, splitter, merger and interaction manager catch them and turn
them into failed results, so callers never see them propagate.
"""

from typing import Any, Optional


class InteractionError(Exception):
    """Base class for all errors raised inside the transformation engine."""


class ValidationError(InteractionError):
    """
    A request that cannot be carried out as asked.

    Covers missing fields, empty source lists, unmatched rules, oversized
    bulk operations, bad cursor positions and strategies that do not
    support the block's type.
    """


class StrategyDefectError(InteractionError):
    """A rule table references a strategy that has no implementation."""

    def __init__(self, kind: str, strategy: Any):
        self.kind = kind
        self.strategy = strategy
        super().__init__(f"Unknown {kind} strategy: {getattr(strategy, 'value', strategy)}")


class ListenerError(InteractionError):
    """An exception raised by an event subscriber during emit."""

    def __init__(self, event: str, original: BaseException, callback: Optional[Any] = None):
        self.event = event
        self.original = original
        self.callback = callback
        super().__init__(f"Error in event callback for {event}: {original}")
