"""Binary-search comparison workflow for placing a new task.

The workflow asks "is the new task more important than X?" about the task in
the middle of the remaining window and halves the window with each answer,
so a list of n tasks needs about log2(n) questions. At most
``MAX_COMPARISONS`` questions are asked; after that the workflow falls back
to manual placement.

States::

    IDLE --Start--> COMPARING --Answer--> COMPARING | COMPLETE | PLACING
                    COMPARING --Skip----> PLACING
                    PLACING ----Place---> COMPLETE
    COMPARING/PLACING --Cancel--> CANCELLED

``transition`` is a pure function over immutable contexts; ``ComparisonEngine``
holds the current context and notifies subscribers when it changes. The
engine never touches storage.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace

from ..models import (
    MAX_COMPARISONS,
    Answer,
    Cancel,
    ComparisonContext,
    ComparisonEvent,
    ComparisonSnapshot,
    ComparisonState,
    Judgment,
    Place,
    Skip,
    Start,
    Task,
    TaskDraft,
)

logger = logging.getLogger(__name__)

Listener = Callable[[ComparisonSnapshot], None]


def transition(context: ComparisonContext, event: ComparisonEvent) -> ComparisonContext:
    """Apply ``event`` to ``context`` and return the next context.

    Events that are not valid in the current state return ``context``
    unchanged.
    """
    state = context.state

    if state == ComparisonState.IDLE and isinstance(event, Start):
        return _start(event)

    if state == ComparisonState.COMPARING:
        if isinstance(event, Answer):
            return _answer(context, Judgment(event.judgment))
        if isinstance(event, Skip):
            return replace(
                context, state=ComparisonState.PLACING, suggested_rank=context.probe_rank
            )

    if state == ComparisonState.PLACING and isinstance(event, Place):
        return replace(context, state=ComparisonState.COMPLETE, final_rank=event.rank)

    if state in (ComparisonState.COMPARING, ComparisonState.PLACING) and isinstance(
        event, Cancel
    ):
        return ComparisonContext(state=ComparisonState.CANCELLED)

    logger.debug("Ignoring %s in state %s", type(event).__name__, state.value)
    return context


def _start(event: Start) -> ComparisonContext:
    """Initialize the search window over the existing tasks."""
    existing = tuple(sorted(event.existing, key=lambda t: t.rank))

    if not existing:
        return ComparisonContext(
            state=ComparisonState.COMPLETE,
            candidate=event.candidate,
            final_rank=0,
        )

    return ComparisonContext(
        state=ComparisonState.COMPARING,
        candidate=event.candidate,
        existing=existing,
        low=0,
        high=len(existing) - 1,
        probe_rank=len(existing) // 2,
        step_count=0,
    )


def _answer(context: ComparisonContext, judgment: Judgment) -> ComparisonContext:
    """Narrow the window by one judgment."""
    step_count = context.step_count + 1
    probe = context.probe_rank
    low, high = context.low, context.high

    if judgment == Judgment.MORE_IMPORTANT:
        high = probe - 1
        if probe == 0:
            # Beats the top task
            return replace(
                context,
                state=ComparisonState.COMPLETE,
                high=high,
                step_count=step_count,
                final_rank=0,
            )
        if low > high:
            return replace(
                context,
                state=ComparisonState.COMPLETE,
                high=high,
                step_count=step_count,
                final_rank=low,
            )
    else:
        low = probe + 1
        if probe >= len(context.existing) - 1:
            # Loses to the last task
            return replace(
                context,
                state=ComparisonState.COMPLETE,
                low=low,
                step_count=step_count,
                final_rank=len(context.existing),
            )
        if low > high:
            return replace(
                context,
                state=ComparisonState.COMPLETE,
                low=low,
                step_count=step_count,
                final_rank=low,
            )

    narrowed = replace(
        context,
        low=low,
        high=high,
        probe_rank=(low + high) // 2,
        step_count=step_count,
    )
    if step_count >= MAX_COMPARISONS:
        logger.debug("Comparison cap reached after %d steps", step_count)
        return replace(
            narrowed, state=ComparisonState.PLACING, suggested_rank=narrowed.probe_rank
        )
    return narrowed


class ComparisonEngine:
    """Stateful wrapper around ``transition`` for one workflow."""

    def __init__(self) -> None:
        self._context = ComparisonContext()
        self._listeners: list[Listener] = []

    @property
    def context(self) -> ComparisonContext:
        """The current immutable context."""
        return self._context

    def subscribe(self, listener: Listener) -> None:
        """Call ``listener`` with a snapshot after every state change."""
        self._listeners.append(listener)

    def send(self, event: ComparisonEvent) -> ComparisonSnapshot:
        """Apply an event and notify subscribers if anything changed."""
        previous = self._context
        self._context = transition(previous, event)
        snapshot = self.current_state()
        if self._context is not previous:
            for listener in self._listeners:
                listener(snapshot)
        return snapshot

    def start(self, candidate: TaskDraft, existing_sorted: Iterable[Task]) -> ComparisonSnapshot:
        """Begin placing ``candidate`` among ``existing_sorted``."""
        return self.send(Start(candidate=candidate, existing=tuple(existing_sorted)))

    def answer(self, judgment: Judgment | str) -> ComparisonSnapshot:
        """Record whether the candidate is more or less important than the probe."""
        return self.send(Answer(judgment=Judgment(judgment)))

    def skip(self) -> ComparisonSnapshot:
        """Stop asking and switch to manual placement."""
        return self.send(Skip())

    def place(self, rank: int) -> ComparisonSnapshot:
        """Pick the final rank while placing (not range-checked here)."""
        return self.send(Place(rank=rank))

    def cancel(self) -> ComparisonSnapshot:
        """Abandon the workflow."""
        return self.send(Cancel())

    def current_state(self) -> ComparisonSnapshot:
        """Snapshot of the current state."""
        return ComparisonSnapshot.from_context(self._context)
