# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""When does caching a periodically-refreshed chat summary pay off?

With summarization enabled, each new summary could either be sent as fresh input on every turn
until the next summarization, or appended to the cached prompt prefix - which costs a cache
(re-)write of the whole prefix once per cycle, in exchange for discounted reads on the other
turns. Equating the per-cycle cost of both options over a cycle of `K` turns::

    K * S * p_input  ==  (P + S) * p_write + (K - 1) * (P + S) * p_read - K * P * p_read

...gives the break-even cycle length returned by `break_even_turns()`.
"""

# Python Built-Ins:
from __future__ import annotations
from dataclasses import dataclass
import logging
from math import inf

# Local Dependencies:
from .constants import OPTIMAL_HISTORY_MARGIN, OPTIMAL_HISTORY_MAX, OPTIMAL_HISTORY_STEP
from .pricing import PriceList
from .serde import JSONableBase
from .strategies import CostModel, Strategy, calculate_cost
from .summarization import simulate_summarization
from .utils import safe_divide
from .workload import WorkloadSpec

logger = logging.getLogger(__name__)


def break_even_turns(
    prefix_tokens: float,
    summary_size: float,
    write_price: float,
    read_price: float,
    input_price: float,
) -> float:
    """Minimum turns-per-cycle at which caching the summary beats sending it fresh

    Returns `math.inf` if caching the summary can never pay off (i.e. cache reads are no cheaper
    than fresh input, or the summary is empty).
    """
    denominator = summary_size * (input_price - read_price)
    if denominator <= 0:
        return inf
    return (prefix_tokens + summary_size) * (write_price - read_price) / denominator


def summary_caching_viable(turns_per_cycle: float, break_even_k: float) -> bool:
    return turns_per_cycle >= break_even_k


@dataclass(frozen=True)
class SummarizationAnalysis(JSONableBase):
    """Cost summary of a summarization setup vs. a plain sliding window of chat history

    Attributes:
        main_call_cost: Cost of the regular requests (with the shared prefix cached)
        summarization_call_cost: Cost of the extra summarization calls
        total_cost: `main_call_cost + summarization_call_cost`
        num_summarizations: Summarization calls per actor
        avg_history_per_turn: Average history tokens sent per turn
        vs_window_savings: Savings vs. the sliding-window baseline (negative if more expensive)
        vs_window_savings_pct: `vs_window_savings` as a percentage of the baseline
        turns_per_cycle: Steady-state turns between summarizations
        break_even_k: Minimum `turns_per_cycle` for summary caching to pay off (may be `inf`)
        summary_caching_viable: Whether `turns_per_cycle >= break_even_k`
        summary_caching_savings: Estimated savings from caching each summary in the prefix
    """

    main_call_cost: float
    summarization_call_cost: float
    total_cost: float
    num_summarizations: int
    avg_history_per_turn: float
    vs_window_savings: float
    vs_window_savings_pct: float
    turns_per_cycle: int
    break_even_k: float
    summary_caching_viable: bool
    summary_caching_savings: float


def analyze_summarization(
    workload: WorkloadSpec,
    prices: PriceList,
    window_cost_total: float,
    tier_multiplier: float = 1.0,
) -> SummarizationAnalysis:
    """Compare summarization (with a cached shared prefix) against a sliding-window baseline

    Args:
        workload: A conversational workload, with `summary_size` set
        prices: The model's price list
        window_cost_total: Total cost of the same workload without summarization (typically the
            assignment-cache strategy over a capped history window)
        tier_multiplier: Scalar applied to every price
    """
    rates = prices.rates(tier_multiplier, prices.effective_cache_ttl(workload.cache_ttl))
    trace = simulate_summarization(
        workload.turns_per_student,
        workload.instruction_tokens,
        workload.output_tokens,
        workload.summary_size,
    )
    breakdown = calculate_cost(
        Strategy.SUMMARY_CACHE_PREFIX, workload, prices, tier_multiplier=tier_multiplier
    )
    summarization_call_cost = breakdown.summarization_calls
    main_call_cost = breakdown.total - summarization_call_cost
    total_cost = breakdown.total
    vs_window_savings = window_cost_total - total_cost

    prefix = workload.shared_prefix_tokens
    summary = workload.summary_size
    break_even_k = break_even_turns(
        prefix, summary, rates.cache_write, rates.cache_read, rates.input
    )

    summary_caching_savings = 0.0
    if trace.num_summarizations > 0 and trace.turns_per_cycle > 0:
        k = trace.turns_per_cycle
        per_cycle_fresh = k * (prefix / 1000) * rates.cache_read + k * (
            summary / 1000
        ) * rates.input
        per_cycle_cached = ((prefix + summary) / 1000) * rates.cache_write + (k - 1) * (
            (prefix + summary) / 1000
        ) * rates.cache_read
        summary_caching_savings = (
            workload.students
            * trace.num_summarizations
            * (per_cycle_fresh - per_cycle_cached)
        )

    return SummarizationAnalysis(
        main_call_cost=main_call_cost,
        summarization_call_cost=summarization_call_cost,
        total_cost=total_cost,
        num_summarizations=trace.num_summarizations,
        avg_history_per_turn=trace.avg_history_per_turn,
        vs_window_savings=vs_window_savings,
        vs_window_savings_pct=safe_divide(vs_window_savings, window_cost_total) * 100,
        turns_per_cycle=trace.turns_per_cycle,
        break_even_k=break_even_k,
        summary_caching_viable=summary_caching_viable(trace.turns_per_cycle, break_even_k),
        summary_caching_savings=summary_caching_savings,
    )


@dataclass(frozen=True)
class OptimalHistoryCap(JSONableBase):
    optimal_tokens: int
    optimal_total: float
    current_total: float
    savings: float
    savings_pct: float


def optimal_history_cap(
    workload: WorkloadSpec,
    cost_model: CostModel,
    min_tokens: int | None = None,
    max_tokens: int = OPTIMAL_HISTORY_MAX,
    step: int = OPTIMAL_HISTORY_STEP,
) -> OptimalHistoryCap:
    """Find the chat history cap that minimizes the cache-in-prefix summarization strategy cost

    Candidate caps are scanned from `min_tokens` (default: summary size plus a margin) up to
    `max_tokens` in increments of `step`. The earliest (smallest) cheapest cap wins ties.
    """
    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")
    if min_tokens is None:
        min_tokens = workload.summary_size + OPTIMAL_HISTORY_MARGIN

    best_tokens = workload.instruction_tokens
    best_total = inf
    for candidate in range(min_tokens, max_tokens + 1, step):
        total = cost_model.calculate(
            Strategy.SUMMARY_CACHE_IN_PREFIX,
            workload.replace(instruction_tokens=candidate),
        ).total
        if total < best_total:
            best_total = total
            best_tokens = candidate

    current_total = cost_model.calculate(Strategy.SUMMARY_CACHE_IN_PREFIX, workload).total
    if best_total == inf:
        logger.warning(
            "No candidate history caps between %s and %s: Keeping current cap",
            min_tokens,
            max_tokens,
        )
        best_total = current_total
    savings = current_total - best_total
    return OptimalHistoryCap(
        optimal_tokens=best_tokens,
        optimal_total=best_total,
        current_total=current_total,
        savings=savings,
        savings_pct=safe_divide(savings, current_total) * 100,
    )
