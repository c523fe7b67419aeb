# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from math import inf

import pytest

from llmcostsim.breakeven import (
    analyze_summarization,
    break_even_turns,
    optimal_history_cap,
    summary_caching_viable,
)
from llmcostsim.strategies import Strategy, calculate_cost
from llmcostsim.workload import workload_from_template


def test_break_even_turns():
    k = break_even_turns(3000, 500, write_price=1.25, read_price=0.1, input_price=1.0)
    # (3000 + 500) * 1.15 / (500 * 0.9)
    assert k == pytest.approx(8.944, abs=1e-3)
    assert 8 <= k <= 10
    assert summary_caching_viable(12, k)
    assert not summary_caching_viable(6, k)


def test_break_even_unreachable():
    # Cache reads no cheaper than fresh input:
    assert break_even_turns(3000, 500, 1.25, 1.0, 1.0) == inf
    assert break_even_turns(3000, 500, 1.25, 1.5, 1.0) == inf
    # Nothing to cache:
    assert break_even_turns(3000, 0, 1.25, 0.1, 1.0) == inf
    assert not summary_caching_viable(1000, inf)


def test_analyze_summarization(caching_prices):
    workload = workload_from_template("clarity-chat-xl")
    window = calculate_cost(Strategy.ASSIGNMENT_CACHE, workload, caching_prices).total
    analysis = analyze_summarization(workload, caching_prices, window_cost_total=window)

    assert analysis.num_summarizations == 4
    assert analysis.turns_per_cycle == 8
    assert analysis.total_cost == pytest.approx(
        analysis.main_call_cost + analysis.summarization_call_cost
    )
    assert analysis.total_cost == pytest.approx(
        calculate_cost(Strategy.SUMMARY_CACHE_PREFIX, workload, caching_prices).total
    )
    assert analysis.vs_window_savings == pytest.approx(window - analysis.total_cost)
    assert analysis.vs_window_savings_pct == pytest.approx(
        analysis.vs_window_savings / window * 100
    )
    # 2000-token shared prefix and 1000-token summary: Break-even at ~3.8 turns per cycle
    assert analysis.break_even_k == pytest.approx(3000 * 1.15 / (1000 * 0.9))
    assert analysis.summary_caching_viable
    assert analysis.summary_caching_savings > 0


def test_analyze_summarization_without_summaries(caching_prices):
    workload = workload_from_template("clarity-chat-xl", turns_per_student=5)
    analysis = analyze_summarization(workload, caching_prices, window_cost_total=0)
    assert analysis.num_summarizations == 0
    assert analysis.summarization_call_cost == 0
    assert analysis.summary_caching_savings == 0
    assert analysis.vs_window_savings_pct == 0


def test_optimal_history_cap(cost_model):
    workload = workload_from_template("clarity-chat-xl")
    result = optimal_history_cap(workload, cost_model)
    assert 1100 <= result.optimal_tokens <= 10000
    assert (result.optimal_tokens - 1100) % 50 == 0
    assert result.optimal_total <= result.current_total
    assert result.savings == pytest.approx(result.current_total - result.optimal_total)
    assert result.savings >= 0
    assert result.optimal_total == pytest.approx(
        cost_model.calculate(
            Strategy.SUMMARY_CACHE_IN_PREFIX,
            workload.replace(instruction_tokens=result.optimal_tokens),
        ).total
    )


def test_optimal_history_cap_empty_range(cost_model, caplog):
    workload = workload_from_template("clarity-chat-xl")
    result = optimal_history_cap(workload, cost_model, min_tokens=5000, max_tokens=4000)
    assert result.optimal_tokens == workload.instruction_tokens
    assert result.savings == 0
    assert "No candidate history caps" in caplog.text


def test_optimal_history_cap_invalid_step(cost_model):
    with pytest.raises(ValueError, match="step"):
        optimal_history_cap(workload_from_template("clarity-chat-xl"), cost_model, step=0)
