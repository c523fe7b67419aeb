# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest

from llmcostsim.accumulation import (
    avg_history_tokens,
    effective_instruction_tokens,
    effective_submission_tokens,
    history_at_turn,
    submission_tokens_at_turn,
    tokens_per_exchange,
)


def test_tokens_per_exchange():
    assert tokens_per_exchange(1000) == 1250
    assert tokens_per_exchange(400) == 500
    # 133 * 1.25 = 166.25
    assert tokens_per_exchange(133) == 166
    # 2 * 1.25 = 2.5 rounds up
    assert tokens_per_exchange(2) == 3
    assert tokens_per_exchange(0) == 0


def test_history_at_turn():
    assert history_at_turn(1, 2000, 400) == 0
    assert history_at_turn(2, 2000, 400) == 500
    assert history_at_turn(3, 2000, 400) == 1000
    assert history_at_turn(10, 2000, 400) == 2000


@pytest.mark.parametrize("cap", [1, 500, 2000, 3650, 100000])
def test_avg_history_single_turn_is_zero(cap):
    assert avg_history_tokens(cap, 1, 400) == 0


def test_avg_history_pure_ramp():
    """With a cap that's never reached, the average is tpe * (turns - 1) / 2"""
    for turns in (2, 5, 10, 40):
        assert avg_history_tokens(10**7, turns, 400) == pytest.approx(500 * (turns - 1) / 2)


@pytest.mark.parametrize(
    "cap,turns,output",
    [(1000, 5, 400), (2000, 12, 400), (3650, 40, 300), (1660, 20, 133), (499, 3, 400)],
)
def test_avg_history_matches_per_turn_history(cap, turns, output):
    expected = sum(history_at_turn(t, cap, output) for t in range(1, turns + 1)) / turns
    assert avg_history_tokens(cap, turns, output) == pytest.approx(expected)


def test_avg_history_degenerate_inputs():
    assert avg_history_tokens(2000, 0, 400) == 0
    assert avg_history_tokens(0, 10, 400) == 0
    # No output means no growth: The whole cap is assumed
    assert avg_history_tokens(2000, 10, 0) == 2000


def test_effective_instruction_tokens():
    assert effective_instruction_tokens(500, 5, 1000, conversational=False) == 500
    assert effective_instruction_tokens(1000, 5, 400, conversational=True) == 700


def test_effective_submission_tokens():
    assert effective_submission_tokens(2000, 12, progressive=True) == 1000
    assert effective_submission_tokens(2000, 12, progressive=False) == 2000
    # A single-turn "progressive" submission is sent complete
    assert effective_submission_tokens(2000, 1, progressive=True) == 2000


def test_submission_tokens_at_turn():
    assert submission_tokens_at_turn(1, 12, 2000, progressive=True) == 0
    assert submission_tokens_at_turn(12, 12, 2000, progressive=True) == 2000
    # 5/11 * 2000 = 909.09
    assert submission_tokens_at_turn(6, 12, 2000, progressive=True) == 909
    assert submission_tokens_at_turn(1, 12, 2000, progressive=False) == 2000
