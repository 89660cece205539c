"""Batch sequencing policy for the calls of one assistant turn."""

from dataclasses import dataclass, field

from toolrelay_server.tools.types import Invalid, ToolCall, ValidationOutcome


@dataclass
class ErrorCall:
    """The first invalid call of a batch, reported instead of executed."""

    call: ToolCall
    outcome: Invalid


@dataclass
class BatchPlan:
    """What happens to each call of a batch.

    Attributes:
        to_execute: Deduplicated calls before the first invalid one
        error_call: The first invalid call, if any
        dropped: Calls after the first invalid one, never reported
    """

    to_execute: list[ToolCall] = field(default_factory=list)
    error_call: ErrorCall | None = None
    dropped: list[ToolCall] = field(default_factory=list)

    @property
    def visible_calls(self) -> list[ToolCall]:
        """The calls recorded on the assistant message for this turn."""
        calls = list(self.to_execute)
        if self.error_call is not None:
            calls.append(self.error_call.call)
        return calls


def deduplicate(calls: list[ToolCall]) -> list[ToolCall]:
    """Collapse repeated (name, arguments) pairs, keeping first-seen order."""
    seen: set[tuple[str, str]] = set()
    unique: list[ToolCall] = []
    for call in calls:
        if call.dedup_key in seen:
            continue
        seen.add(call.dedup_key)
        unique.append(call)
    return unique


def plan_batch(calls: list[ToolCall], outcomes: list[ValidationOutcome]) -> BatchPlan:
    """Split a validated batch into executable, error and dropped calls.

    Once the model has diverged from a valid schema, the rest of the burst
    is unreliable: calls after the first invalid one are dropped silently.

    Args:
        calls: Calls in the order the model produced them
        outcomes: Validation outcome for each call, same order

    Returns:
        The plan for this batch
    """
    if len(calls) != len(outcomes):
        raise ValueError("Each call needs exactly one validation outcome")

    first_invalid = next(
        ((i, outcome) for i, outcome in enumerate(outcomes) if isinstance(outcome, Invalid)),
        None,
    )

    if first_invalid is None:
        return BatchPlan(to_execute=deduplicate(calls))

    index, outcome = first_invalid
    return BatchPlan(
        to_execute=deduplicate(calls[:index]),
        error_call=ErrorCall(call=calls[index], outcome=outcome),
        dropped=calls[index + 1 :],
    )
