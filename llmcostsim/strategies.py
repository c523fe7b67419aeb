# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Closed-form cost formulas for each inference pricing strategy

A `Strategy` is one way of serving a workload - sending every prompt fresh, caching part of the
prompt prefix, batching, or summarizing chat history (with or without caching). `calculate_cost()`
dispatches a strategy to its formula and returns a uniform, itemized `CostBreakdown`.

Prompt caching is strictly prefix-based: A cached segment can only be re-used if everything before
it in the prompt is identical, and any segment that changes forces a re-write of everything after
it.
"""

# Python Built-Ins:
from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
import logging
from typing import Callable

# Local Dependencies:
from .constants import CHART_COLORS, CHARS_PER_TOKEN, GUARDRAILS_COST_PER_1K_UNITS
from .pricing import PriceList, Rates
from .serde import JSONableBase
from .summarization import cache_in_prefix_turns, simulate_summarization
from .workload import WorkloadSpec

logger = logging.getLogger(__name__)


class Strategy(str, Enum):
    NO_CACHING = "no_caching"
    ASSIGNMENT_CACHE = "assignment_cache"
    SUBMISSION_CACHE = "submission_cache"
    BATCH = "batch"
    SUMMARY_NO_CACHE = "summary_no_cache"
    SUMMARY_CACHE_PREFIX = "summary_cache_prefix"
    SUMMARY_CACHE_IN_PREFIX = "summary_cache_in_prefix"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def tiebreak_rank(self) -> int:
        """Lower ranks win when two strategies cost exactly the same"""
        return _TIEBREAK[self]

    @property
    def color(self) -> str:
        return _COLORS[self]

    @property
    def uses_cache(self) -> bool:
        return self in (
            Strategy.ASSIGNMENT_CACHE,
            Strategy.SUBMISSION_CACHE,
            Strategy.SUMMARY_CACHE_PREFIX,
            Strategy.SUMMARY_CACHE_IN_PREFIX,
        )

    @property
    def is_summarization(self) -> bool:
        return self in SUMMARY_STRATEGIES


SUMMARY_STRATEGIES = (
    Strategy.SUMMARY_NO_CACHE,
    Strategy.SUMMARY_CACHE_PREFIX,
    Strategy.SUMMARY_CACHE_IN_PREFIX,
)

_LABELS = {
    Strategy.NO_CACHING: "No Caching",
    Strategy.ASSIGNMENT_CACHE: "Per-Assignment Cache",
    Strategy.SUBMISSION_CACHE: "Per-Submission Cache",
    Strategy.BATCH: "Batch Inference",
    Strategy.SUMMARY_NO_CACHE: "Chat Sum. - No Cache",
    Strategy.SUMMARY_CACHE_PREFIX: "Chat Sum. - Cache Prefix",
    Strategy.SUMMARY_CACHE_IN_PREFIX: "Chat Sum. - Cache in Prefix",
}
_TIEBREAK = {
    Strategy.ASSIGNMENT_CACHE: 0,
    Strategy.SUMMARY_CACHE_IN_PREFIX: 0,
    Strategy.SUBMISSION_CACHE: 1,
    Strategy.SUMMARY_CACHE_PREFIX: 1,
    Strategy.BATCH: 2,
    Strategy.NO_CACHING: 3,
    Strategy.SUMMARY_NO_CACHE: 3,
}
_COLORS = {
    Strategy.NO_CACHING: CHART_COLORS["no_caching"],
    Strategy.ASSIGNMENT_CACHE: CHART_COLORS["cache_prefix"],
    Strategy.SUBMISSION_CACHE: CHART_COLORS["cache_submission"],
    Strategy.BATCH: CHART_COLORS["batch"],
    Strategy.SUMMARY_NO_CACHE: CHART_COLORS["no_caching"],
    Strategy.SUMMARY_CACHE_PREFIX: CHART_COLORS["cache_prefix"],
    Strategy.SUMMARY_CACHE_IN_PREFIX: CHART_COLORS["batch"],
}


@dataclass(frozen=True)
class CostBreakdown(JSONableBase):
    """Itemized cost of serving one workload with one strategy

    `total` is always the sum of all components. `summarization_calls` is only non-zero for the
    chat-summarization strategies.
    """

    cache_write: float = 0.0
    cache_read: float = 0.0
    fresh_input: float = 0.0
    output: float = 0.0
    guardrails: float = 0.0
    summarization_calls: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.cache_write
            + self.cache_read
            + self.fresh_input
            + self.output
            + self.guardrails
            + self.summarization_calls
        )

    def with_guardrails(self, guardrails: float) -> CostBreakdown:
        return replace(self, guardrails=guardrails)

    def __add__(self, other: CostBreakdown | int) -> CostBreakdown:
        """Add two breakdowns component-wise (`0` is accepted to support `sum()`)"""
        if isinstance(other, int) and other == 0:
            return self
        if not isinstance(other, CostBreakdown):
            return NotImplemented
        return CostBreakdown(
            cache_write=self.cache_write + other.cache_write,
            cache_read=self.cache_read + other.cache_read,
            fresh_input=self.fresh_input + other.fresh_input,
            output=self.output + other.output,
            guardrails=self.guardrails + other.guardrails,
            summarization_calls=self.summarization_calls + other.summarization_calls,
        )

    def __radd__(self, other: CostBreakdown | int) -> CostBreakdown:
        return self.__add__(other)

    def to_dict(self, **kwargs) -> dict:
        return super().to_dict(total=self.total, **kwargs)

    @classmethod
    def from_dict(cls, raw: dict, **kwargs) -> CostBreakdown:
        raw_args = {k: v for k, v in raw.items() if k != "total"}
        return super().from_dict(raw_args, **kwargs)


def guardrails_cost(
    total_requests: int, student_input_tokens: float, output_tokens: float
) -> float:
    """Cost of content-filtering each request's actor-provided input and its generated output

    Guardrails bill per 1,000 "text units" of up to 1,000 characters each.
    """
    evaluated_chars = (student_input_tokens + output_tokens) * CHARS_PER_TOKEN
    text_units = evaluated_chars / 1000
    return total_requests * (text_units / 1000) * GUARDRAILS_COST_PER_1K_UNITS


def _output_cost(w: WorkloadSpec, r: Rates) -> float:
    return w.total_requests * (w.output_tokens / 1000) * r.output


def _no_caching(w: WorkloadSpec, r: Rates) -> CostBreakdown:
    all_input = (
        w.shared_prefix_tokens + w.effective_submission_tokens + w.effective_instruction_tokens
    )
    return CostBreakdown(
        fresh_input=w.total_requests * (all_input / 1000) * r.input,
        output=_output_cost(w, r),
    )


def _batch(w: WorkloadSpec, r: Rates) -> CostBreakdown:
    all_input = (
        w.shared_prefix_tokens + w.effective_submission_tokens + w.effective_instruction_tokens
    )
    return CostBreakdown(
        fresh_input=w.total_requests * (all_input / 1000) * r.batch_input,
        output=w.total_requests * (w.output_tokens / 1000) * r.batch_output,
    )


def _assignment_cache(w: WorkloadSpec, r: Rates) -> CostBreakdown:
    cached = w.shared_prefix_tokens
    fresh = w.effective_submission_tokens + w.effective_instruction_tokens
    return CostBreakdown(
        cache_write=(cached / 1000) * r.cache_write,
        cache_read=(w.total_requests - 1) * (cached / 1000) * r.cache_read,
        fresh_input=w.total_requests * (fresh / 1000) * r.input,
        output=_output_cost(w, r),
    )


def _submission_cache(w: WorkloadSpec, r: Rates) -> CostBreakdown:
    shared = w.shared_prefix_tokens
    submission = w.effective_submission_tokens
    if w.submission_cacheable:
        # Each actor writes their own full prefix once, and reads it on their later turns:
        full = shared + submission
        cache_write = w.students * (full / 1000) * r.cache_write
        cache_read = w.students * (w.turns_per_student - 1) * (full / 1000) * r.cache_read
    else:
        # The submission changes every turn, so it's re-written on every request:
        cache_write = (shared / 1000) * r.cache_write + w.total_requests * (
            submission / 1000
        ) * r.cache_write
        cache_read = (w.total_requests - 1) * (shared / 1000) * r.cache_read
    return CostBreakdown(
        cache_write=cache_write,
        cache_read=cache_read,
        fresh_input=w.total_requests * (w.effective_instruction_tokens / 1000) * r.input,
        output=_output_cost(w, r),
    )


def _summarization_calls(w: WorkloadSpec, r: Rates, num_summarizations: int) -> float:
    per_call_input = (w.system_tokens + w.instruction_tokens) / 1000 * r.input
    per_call_output = (w.summary_size / 1000) * r.output
    return w.students * num_summarizations * (per_call_input + per_call_output)


def _trace_for(w: WorkloadSpec):
    return simulate_summarization(
        w.turns_per_student, w.instruction_tokens, w.output_tokens, w.summary_size
    )


def _summary_no_cache(w: WorkloadSpec, r: Rates) -> CostBreakdown:
    trace = _trace_for(w)
    fixed_per_request = w.shared_prefix_tokens + w.effective_submission_tokens
    return CostBreakdown(
        fresh_input=w.total_requests * (fixed_per_request / 1000) * r.input
        + w.students * (trace.total_history_tokens_sent / 1000) * r.input,
        output=_output_cost(w, r),
        summarization_calls=_summarization_calls(w, r, trace.num_summarizations),
    )


def _summary_cache_prefix(w: WorkloadSpec, r: Rates) -> CostBreakdown:
    trace = _trace_for(w)
    cached = w.shared_prefix_tokens
    return CostBreakdown(
        cache_write=(cached / 1000) * r.cache_write,
        cache_read=(w.total_requests - 1) * (cached / 1000) * r.cache_read,
        fresh_input=w.students * (trace.total_history_tokens_sent / 1000) * r.input
        + w.total_requests * (w.effective_submission_tokens / 1000) * r.input,
        output=_output_cost(w, r),
        summarization_calls=_summarization_calls(w, r, trace.num_summarizations),
    )


def _summary_cache_in_prefix(w: WorkloadSpec, r: Rates) -> CostBreakdown:
    trace = _trace_for(w)
    shared = w.shared_prefix_tokens
    per_student_write = 0.0
    per_student_read = 0.0
    per_student_fresh = 0.0
    for turn in cache_in_prefix_turns(trace, shared, w.summary_size, w.turns_per_student):
        if turn.write:
            per_student_write += (turn.prefix_tokens / 1000) * r.cache_write
        else:
            per_student_read += (turn.prefix_tokens / 1000) * r.cache_read
        per_student_fresh += (
            (w.effective_submission_tokens + turn.fresh_history_tokens) / 1000
        ) * r.input

    # The shared prefix is common to all actors, so only the first actor's turn-1 write is a real
    # write - the other (students - 1) turn-1 writes of that span are reads:
    other_students = max(0, w.students - 1)
    write_correction = other_students * (shared / 1000) * r.cache_write
    read_correction = other_students * (shared / 1000) * r.cache_read
    return CostBreakdown(
        cache_write=w.students * per_student_write - write_correction,
        cache_read=w.students * per_student_read + read_correction,
        fresh_input=w.students * per_student_fresh,
        output=_output_cost(w, r),
        summarization_calls=_summarization_calls(w, r, trace.num_summarizations),
    )


_FORMULAS: dict[Strategy, Callable[[WorkloadSpec, Rates], CostBreakdown]] = {
    Strategy.NO_CACHING: _no_caching,
    Strategy.ASSIGNMENT_CACHE: _assignment_cache,
    Strategy.SUBMISSION_CACHE: _submission_cache,
    Strategy.BATCH: _batch,
    Strategy.SUMMARY_NO_CACHE: _summary_no_cache,
    Strategy.SUMMARY_CACHE_PREFIX: _summary_cache_prefix,
    Strategy.SUMMARY_CACHE_IN_PREFIX: _summary_cache_in_prefix,
}


def calculate_cost(
    strategy: Strategy | str,
    workload: WorkloadSpec,
    prices: PriceList,
    tier_multiplier: float = 1.0,
    include_guardrails: bool = False,
) -> CostBreakdown:
    """Calculate the itemized cost of serving `workload` with `strategy` at the given prices

    Args:
        strategy: Which pricing strategy to cost
        workload: The workload. Conversational and progressive-submission adjustments are applied
            automatically from its flags.
        prices: The model's price list. Missing optional prices count as zero.
        tier_multiplier: Scalar applied to every price, to model priority/flex service tiers
        include_guardrails: Set `True` to add content-filtering costs to the breakdown
    """
    strategy = Strategy(strategy)
    rates = prices.rates(tier_multiplier, prices.effective_cache_ttl(workload.cache_ttl))
    result = _FORMULAS[strategy](workload, rates)
    if include_guardrails:
        result = result.with_guardrails(
            guardrails_cost(
                workload.total_requests,
                workload.effective_submission_tokens,
                workload.output_tokens,
            )
        )
    return result


@dataclass
class CostModel:
    """Memoizing cost calculator for one model's prices, tier and guardrails setting

    Results are cached per `(strategy, workload, prices, tier_multiplier, include_guardrails)`,
    so changing any of these attributes (or passing a different workload) never returns a stale
    result. Use `clear_cache()` to release memory between unrelated analyses.
    """

    prices: PriceList
    tier_multiplier: float = 1.0
    include_guardrails: bool = False
    _cache: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def calculate(self, strategy: Strategy | str, workload: WorkloadSpec) -> CostBreakdown:
        strategy = Strategy(strategy)
        key = (
            strategy,
            workload,
            self.prices,
            self.tier_multiplier,
            self.include_guardrails,
        )
        if key in self._cache:
            logger.debug("Cache hit for %s", strategy.value)
            return self._cache[key]
        result = calculate_cost(
            strategy,
            workload,
            self.prices,
            tier_multiplier=self.tier_multiplier,
            include_guardrails=self.include_guardrails,
        )
        self._cache[key] = result
        return result

    def calculate_all(
        self, strategies: list[Strategy], workload: WorkloadSpec
    ) -> dict[Strategy, CostBreakdown]:
        return {s: self.calculate(s, workload) for s in strategies}

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)
