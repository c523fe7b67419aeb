# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Assemble cost breakdowns into comparisons and per-turn traces for presentation"""

# Python Built-Ins:
from __future__ import annotations
from dataclasses import dataclass
import logging

# Local Dependencies:
from .accumulation import history_at_turn, submission_tokens_at_turn
from .pricing import PriceList
from .serde import JSONableBase
from .sensitivity import pick_winner
from .strategies import CostBreakdown, CostModel, Strategy, SUMMARY_STRATEGIES
from .summarization import cache_in_prefix_turns, simulate_summarization
from .utils import safe_divide
from .workload import WorkloadSpec

logger = logging.getLogger(__name__)


def comparison_strategies(
    prices: PriceList, include_batch: bool = False, summarization: bool = False
) -> list[Strategy]:
    """Strategies that make sense to compare for a model: Caching ones only if it's supported"""
    caching = prices.capabilities.supports_caching
    if summarization:
        return list(SUMMARY_STRATEGIES) if caching else [Strategy.SUMMARY_NO_CACHE]
    strategies = [Strategy.NO_CACHING]
    if include_batch:
        strategies.append(Strategy.BATCH)
    if caching:
        strategies += [Strategy.ASSIGNMENT_CACHE, Strategy.SUBMISSION_CACHE]
    return strategies


@dataclass(frozen=True)
class StrategyComparison(JSONableBase):
    """Breakdowns for a set of strategies on one workload, and which is cheapest

    `winner`, `worst`, `savings` and `savings_pct` are only set when at least two strategies were
    compared. Savings are measured against the most expensive strategy.
    """

    breakdowns: dict[Strategy, CostBreakdown]
    winner: Strategy | None = None
    worst: Strategy | None = None
    savings: float | None = None
    savings_pct: float | None = None

    @property
    def totals(self) -> dict[Strategy, float]:
        return {s: b.total for s, b in self.breakdowns.items()}


def compare_strategies(
    workload: WorkloadSpec,
    cost_model: CostModel,
    strategies: list[Strategy] | None = None,
    include_batch: bool = False,
) -> StrategyComparison:
    """Cost `workload` under several strategies and pick the cheapest

    Args:
        workload: The workload to cost
        cost_model: Calculator for the selected model's prices
        strategies: Strategies to compare. By default, chosen by `comparison_strategies()` based
            on the model's caching support and whether the workload summarizes its chat history.
        include_batch: Include batch inference in the default strategy set (ignored if
            `strategies` is provided). Check `ModelPricing.batch_available_for_tier()` first.
    """
    if strategies is None:
        strategies = comparison_strategies(
            cost_model.prices,
            include_batch=include_batch,
            summarization=workload.summarization_active,
        )
    breakdowns = cost_model.calculate_all(strategies, workload)
    if len(breakdowns) <= 1:
        return StrategyComparison(breakdowns=breakdowns)

    totals = {s: b.total for s, b in breakdowns.items()}
    winner = pick_winner(totals)
    worst = max(totals, key=totals.get)
    savings = totals[worst] - totals[winner]
    return StrategyComparison(
        breakdowns=breakdowns,
        winner=winner,
        worst=worst,
        savings=savings,
        savings_pct=safe_divide(savings, totals[worst]) * 100,
    )


@dataclass(frozen=True)
class TurnCost(JSONableBase):
    """Cost of one actor's request on a single turn of a conversation

    Summarization fields are `None` unless summarization is enabled, and caching fields are `None`
    if the model doesn't support caching.
    """

    turn: int
    history_tokens: int
    submission_tokens: int
    no_caching: float
    with_caching: float | None = None
    summary_history_tokens: int | None = None
    summary_no_cache: float | None = None
    summary_cache_prefix: float | None = None
    summary_cache_in_prefix: float | None = None


def per_turn_costs(
    workload: WorkloadSpec,
    prices: PriceList,
    tier_multiplier: float = 1.0,
) -> list[TurnCost]:
    """Per-request cost on each turn of a conversational workload

    Returns an empty list for non-conversational workloads, or conversations of fewer than 2 turns.
    """
    if not workload.conversational or workload.turns_per_student < 2:
        return []
    rates = prices.rates(tier_multiplier, prices.effective_cache_ttl(workload.cache_ttl))
    caching = prices.capabilities.supports_caching
    prefix = workload.shared_prefix_tokens
    output_cost = (workload.output_tokens / 1000) * rates.output

    trace = None
    cip_turns = []
    if workload.summarization_enabled:
        trace = simulate_summarization(
            workload.turns_per_student,
            workload.instruction_tokens,
            workload.output_tokens,
            workload.summary_size,
        )
        cip_turns = cache_in_prefix_turns(
            trace, prefix, workload.summary_size, workload.turns_per_student
        )

    result = []
    for i in range(workload.turns_per_student):
        turn = i + 1
        submission = submission_tokens_at_turn(
            turn,
            workload.turns_per_student,
            workload.submission_tokens,
            workload.progressive_submission,
        )
        history = history_at_turn(turn, workload.instruction_tokens, workload.output_tokens)
        fresh = submission + history
        prefix_price = rates.cache_write if turn == 1 else rates.cache_read
        no_caching = ((prefix + fresh) / 1000) * rates.input + output_cost
        args = dict(
            turn=turn,
            history_tokens=history,
            submission_tokens=submission,
            no_caching=no_caching,
        )
        if caching:
            args["with_caching"] = (
                (prefix / 1000) * prefix_price + (fresh / 1000) * rates.input + output_cost
            )

        if trace is not None:
            summary_history = trace.history_per_turn[i] if i < len(trace.history_per_turn) else 0
            summary_fresh = submission + summary_history
            args["summary_history_tokens"] = summary_history
            args["summary_no_cache"] = (
                (prefix + summary_fresh) / 1000
            ) * rates.input + output_cost
            if caching:
                args["summary_cache_prefix"] = (
                    (prefix / 1000) * prefix_price
                    + (summary_fresh / 1000) * rates.input
                    + output_cost
                )
                cip = cip_turns[i]
                cip_price = rates.cache_write if cip.write else rates.cache_read
                args["summary_cache_in_prefix"] = (
                    (cip.prefix_tokens / 1000) * cip_price
                    + ((submission + cip.fresh_history_tokens) / 1000) * rates.input
                    + output_cost
                )
        result.append(TurnCost(**args))
    return result
