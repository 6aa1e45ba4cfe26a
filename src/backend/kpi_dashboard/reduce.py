"""
Reduce/rereduce logic for precomputed views.

A view store reduces chunks of mapped values independently and then merges
the chunk results. Every merge below is associative and commutative, so the
final value does not depend on how the store partitioned its input.
"""

from __future__ import annotations

from functools import reduce
from typing import Dict, Iterable, Mapping, Sequence, Tuple

from .models import StepFractions

Counts = Dict[str, int]
NestedCounts = Dict[str, Counts]


# Additive form: {step: count}


def merge_counts(a: Mapping[str, int], b: Mapping[str, int]) -> Counts:
    merged = dict(a)
    for step, count in b.items():
        merged[step] = merged.get(step, 0) + count
    return merged


def reduce_counts(step_lists: Iterable[Sequence[str]]) -> Counts:
    counts: Counts = {}
    for steps in step_lists:
        for step in steps:
            counts[step] = counts.get(step, 0) + 1
    return counts


def rereduce_counts(partials: Iterable[Mapping[str, int]]) -> Counts:
    return reduce(merge_counts, partials, {})


# Nested form: {segment: {step: count}}


def merge_nested_counts(a: Mapping[str, Mapping[str, int]], b: Mapping[str, Mapping[str, int]]) -> NestedCounts:
    merged: NestedCounts = {segment: dict(counts) for segment, counts in a.items()}
    for segment, counts in b.items():
        merged[segment] = merge_counts(merged.get(segment, {}), counts)
    return merged


def reduce_nested_counts(pairs: Iterable[Tuple[str, Sequence[str]]]) -> NestedCounts:
    nested: NestedCounts = {}
    for segment, steps in pairs:
        # Segments without completed steps still get an entry.
        counts = nested.setdefault(segment, {})
        for step in steps:
            counts[step] = counts.get(step, 0) + 1
    return nested


def rereduce_nested_counts(partials: Iterable[Mapping[str, Mapping[str, int]]]) -> NestedCounts:
    return reduce(merge_nested_counts, partials, {})


# Weighted-fraction form: {steps: {step: fraction}, total: n}


def merge_fractions(a: StepFractions, b: StepFractions) -> StepFractions:
    """
    Combine two fraction partials into the fraction over their union.

    Partials only keep the already-divided fraction, so each side is weighted
    by its ``total``. A step missing on one side has fraction 0 there.
    """

    total = a.total + b.total
    if total == 0:
        return StepFractions(steps={}, total=0)
    steps = {
        step: a.steps.get(step, 0.0) * a.total / total + b.steps.get(step, 0.0) * b.total / total
        for step in {**a.steps, **b.steps}
    }
    return StepFractions(steps=steps, total=total)


def reduce_fractions(step_lists: Sequence[Sequence[str]]) -> StepFractions:
    total = len(step_lists)
    if total == 0:
        return StepFractions(steps={}, total=0)
    counts = reduce_counts(step_lists)
    return StepFractions(steps={step: count / total for step, count in counts.items()}, total=total)


def rereduce_fractions(partials: Iterable[StepFractions]) -> StepFractions:
    return reduce(merge_fractions, partials, StepFractions())
