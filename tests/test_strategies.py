# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest

from llmcostsim.pricing import ModelCapabilities, PriceList
from llmcostsim.strategies import (
    CostBreakdown,
    CostModel,
    Strategy,
    calculate_cost,
    guardrails_cost,
)
from llmcostsim.workload import (
    TEMPLATES,
    WorkloadParameter,
    WorkloadSpec,
    workload_from_template,
)


def test_scenario_values(scenario, caching_prices):
    """Hand-calculated values for a reference non-conversational workload"""
    assignment = calculate_cost(Strategy.ASSIGNMENT_CACHE, scenario, caching_prices)
    assert assignment.cache_read == pytest.approx(149 * 16 * 0.1 * 0.003)
    assert assignment.cache_read == pytest.approx(0.7152)
    assert assignment.cache_write == pytest.approx(16 * 0.00375)

    no_caching = calculate_cost(Strategy.NO_CACHING, scenario, caching_prices)
    assert no_caching.fresh_input == pytest.approx(150 * 18.5 * 0.003)
    assert no_caching.fresh_input == pytest.approx(8.325)
    assert no_caching.output == pytest.approx(150 * 1 * 0.015)
    assert no_caching.cache_write == 0
    assert no_caching.cache_read == 0


def test_submission_cache_stable_submission(scenario, caching_prices):
    result = calculate_cost(Strategy.SUBMISSION_CACHE, scenario, caching_prices)
    # Each of 30 actors writes 18k tokens once, and reads them on 4 later turns
    assert result.cache_write == pytest.approx(30 * 18 * 0.00375)
    assert result.cache_read == pytest.approx(30 * 4 * 18 * 0.0003)
    assert result.fresh_input == pytest.approx(150 * 0.5 * 0.003)


def test_submission_cache_changing_submission(scenario, caching_prices):
    workload = scenario.replace(submission_cacheable=False)
    result = calculate_cost(Strategy.SUBMISSION_CACHE, workload, caching_prices)
    assert result.cache_write == pytest.approx(16 * 0.00375 + 150 * 2 * 0.00375)
    assert result.cache_read == pytest.approx(0.7152)


@pytest.mark.parametrize("template", list(TEMPLATES))
@pytest.mark.parametrize("strategy", list(Strategy))
def test_total_is_sum_of_components(template, strategy, caching_prices):
    workload = workload_from_template(template)
    result = calculate_cost(strategy, workload, caching_prices, include_guardrails=True)
    assert result.total == pytest.approx(
        result.cache_write
        + result.cache_read
        + result.fresh_input
        + result.output
        + result.guardrails
        + result.summarization_calls
    )
    assert result.guardrails > 0
    if not strategy.is_summarization:
        assert result.summarization_calls == 0


@pytest.mark.parametrize("parameter", list(WorkloadParameter))
def test_no_caching_is_monotonic(parameter, scenario, caching_prices):
    totals = [
        calculate_cost(
            Strategy.NO_CACHING, scenario.with_parameter(parameter, value), caching_prices
        ).total
        for value in (1, 2, 10, 100, 1000, 5000)
    ]
    assert totals == sorted(totals)


def test_caching_amortizes(scenario, caching_prices):
    """With cheap cache reads, prefix caching wins once enough requests share the prefix"""
    single = scenario.replace(students=1, turns_per_student=1)
    assert (
        calculate_cost(Strategy.ASSIGNMENT_CACHE, single, caching_prices).total
        > calculate_cost(Strategy.NO_CACHING, single, caching_prices).total
    )
    for students in (2, 10, 100):
        workload = single.replace(students=students)
        assert (
            calculate_cost(Strategy.ASSIGNMENT_CACHE, workload, caching_prices).total
            < calculate_cost(Strategy.NO_CACHING, workload, caching_prices).total
        )


def test_missing_cache_prices_count_as_zero(scenario):
    prices = PriceList(
        input_price=0.003,
        output_price=0.015,
        capabilities=ModelCapabilities(supports_caching=True),
    )
    assert prices.has_missing_cache_prices
    result = calculate_cost(Strategy.ASSIGNMENT_CACHE, scenario, prices)
    assert result.cache_write == 0
    assert result.cache_read == 0
    assert result.total > 0


def test_batch(scenario, caching_prices, plain_prices):
    no_caching = calculate_cost(Strategy.NO_CACHING, scenario, caching_prices)
    batch = calculate_cost(Strategy.BATCH, scenario, caching_prices)
    assert batch.total == pytest.approx(no_caching.total / 2)

    # Without batch prices, batch falls back to standard pricing
    assert calculate_cost(Strategy.BATCH, scenario, plain_prices).total == pytest.approx(
        calculate_cost(Strategy.NO_CACHING, scenario, plain_prices).total
    )


@pytest.mark.parametrize("strategy", list(Strategy))
def test_tier_multiplier_scales_totals(strategy, caching_prices):
    workload = workload_from_template("clarity-chat-xl")
    base = calculate_cost(strategy, workload, caching_prices)
    priority = calculate_cost(strategy, workload, caching_prices, tier_multiplier=1.75)
    assert priority.total == pytest.approx(base.total * 1.75)


def test_guardrails(scenario, caching_prices):
    # 150 requests * (2000 + 1000 tokens * 4 chars) = 12 text units each
    assert guardrails_cost(150, 2000, 1000) == pytest.approx(150 * 12 / 1000 * 0.15)
    without = calculate_cost(Strategy.NO_CACHING, scenario, caching_prices)
    with_guardrails = calculate_cost(
        Strategy.NO_CACHING, scenario, caching_prices, include_guardrails=True
    )
    assert with_guardrails.guardrails == pytest.approx(0.27)
    assert with_guardrails.total == pytest.approx(without.total + 0.27)


def test_summarization_calls(caching_prices):
    workload = workload_from_template("clarity-chat-xl")
    result = calculate_cost(Strategy.SUMMARY_NO_CACHE, workload, caching_prices)
    # 4 summarizations per actor, each reading system prompt + 3650 history tokens and writing a
    # 1000-token summary:
    per_call = (1000 + 3650) / 1000 * 0.003 + 1000 / 1000 * 0.015
    assert result.summarization_calls == pytest.approx(30 * 4 * per_call)


def test_summary_strategies_without_summarization(caching_prices):
    """If the history cap is never reached, summary strategies reduce to plain prefix caching"""
    workload = workload_from_template(
        "clarity-chat", summarization_enabled=True, turns_per_student=5
    )
    workload = workload.replace(instruction_tokens=100000)
    assignment = calculate_cost(Strategy.ASSIGNMENT_CACHE, workload, caching_prices)
    cache_prefix = calculate_cost(Strategy.SUMMARY_CACHE_PREFIX, workload, caching_prices)
    in_prefix = calculate_cost(Strategy.SUMMARY_CACHE_IN_PREFIX, workload, caching_prices)
    assert cache_prefix.summarization_calls == 0
    assert cache_prefix.total == pytest.approx(assignment.total)
    assert in_prefix.cache_write == pytest.approx(cache_prefix.cache_write)
    assert in_prefix.cache_read == pytest.approx(cache_prefix.cache_read)
    assert in_prefix.total == pytest.approx(cache_prefix.total)


def test_summary_caching_beats_no_cache(caching_prices):
    workload = workload_from_template("clarity-chat-xl")
    totals = {
        s: calculate_cost(s, workload, caching_prices).total
        for s in (
            Strategy.SUMMARY_NO_CACHE,
            Strategy.SUMMARY_CACHE_PREFIX,
            Strategy.SUMMARY_CACHE_IN_PREFIX,
        )
    }
    assert totals[Strategy.SUMMARY_CACHE_PREFIX] < totals[Strategy.SUMMARY_NO_CACHE]
    assert totals[Strategy.SUMMARY_CACHE_IN_PREFIX] < totals[Strategy.SUMMARY_NO_CACHE]


def test_strategy_properties():
    assert Strategy("no_caching") is Strategy.NO_CACHING
    assert Strategy.ASSIGNMENT_CACHE.tiebreak_rank < Strategy.SUBMISSION_CACHE.tiebreak_rank
    assert Strategy.SUBMISSION_CACHE.tiebreak_rank < Strategy.BATCH.tiebreak_rank
    assert Strategy.BATCH.tiebreak_rank < Strategy.NO_CACHING.tiebreak_rank
    assert Strategy.NO_CACHING.color == "#f97316"
    assert Strategy.SUMMARY_CACHE_IN_PREFIX.uses_cache
    assert not Strategy.BATCH.uses_cache
    assert Strategy.SUMMARY_NO_CACHE.is_summarization


def test_cost_breakdown_arithmetic_and_serialization():
    a = CostBreakdown(cache_write=1, fresh_input=2, output=3)
    b = CostBreakdown(cache_read=0.5, guardrails=0.25)
    total = sum([a, b])
    assert total == CostBreakdown(
        cache_write=1, cache_read=0.5, fresh_input=2, output=3, guardrails=0.25
    )
    assert total.total == pytest.approx(6.75)

    as_dict = total.to_dict()
    assert as_dict["_type"] == "CostBreakdown"
    assert as_dict["total"] == pytest.approx(6.75)
    assert CostBreakdown.from_dict(as_dict) == total


def test_cost_model_memoization(scenario, caching_prices):
    model = CostModel(prices=caching_prices)
    first = model.calculate(Strategy.NO_CACHING, scenario)
    assert model.calculate("no_caching", scenario) is first
    assert model.cache_size == 1

    other = model.calculate(Strategy.NO_CACHING, scenario.replace(students=31))
    assert other.total > first.total
    assert model.cache_size == 2

    # Changing model settings must not return stale results:
    model.tier_multiplier = 2.0
    assert model.calculate(Strategy.NO_CACHING, scenario).total == pytest.approx(first.total * 2)

    model.clear_cache()
    assert model.cache_size == 0


def test_cost_model_calculate_all(scenario, cost_model):
    results = cost_model.calculate_all([Strategy.NO_CACHING, Strategy.ASSIGNMENT_CACHE], scenario)
    assert list(results) == [Strategy.NO_CACHING, Strategy.ASSIGNMENT_CACHE]
    assert results[Strategy.ASSIGNMENT_CACHE].total < results[Strategy.NO_CACHING].total


@pytest.mark.parametrize("degenerate", [{"output_tokens": 0}, {"instruction_tokens": 0}])
def test_summary_cache_in_prefix_with_empty_trace(degenerate, caching_prices):
    """Without any simulated history, caching the summary in the prefix is plain prefix caching"""
    workload = WorkloadSpec(
        students=30,
        turns_per_student=10,
        system_tokens=1000,
        shared_context_tokens=1000,
        submission_tokens=2000,
        instruction_tokens=2000,
        output_tokens=400,
        conversational=True,
        summarization_enabled=True,
    ).replace(**degenerate)
    in_prefix = calculate_cost(Strategy.SUMMARY_CACHE_IN_PREFIX, workload, caching_prices)
    cache_prefix = calculate_cost(Strategy.SUMMARY_CACHE_PREFIX, workload, caching_prices)

    for component in (
        "cache_write",
        "cache_read",
        "fresh_input",
        "output",
        "guardrails",
        "summarization_calls",
    ):
        assert getattr(in_prefix, component) >= 0
        assert getattr(in_prefix, component) == pytest.approx(getattr(cache_prefix, component))
    assert in_prefix.cache_write == pytest.approx(2 * 0.00375)
    assert in_prefix.fresh_input == pytest.approx(300 * 2 * 0.003)
