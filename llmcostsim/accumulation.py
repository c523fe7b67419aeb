# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Token-count transforms for conversational and progressive-submission workloads

A conversation doesn't send its full history cap on every turn: History starts empty on turn 1 and
grows by one exchange (an AI response plus an estimated user message) per turn until it reaches
the cap. Likewise a "progressive" submission - such as a draft being written during a chat - grows
linearly from nothing on the first turn to its full length on the last.

These functions only transform token counts. They carry no pricing logic, and are applied to a
workload before its costs are calculated.
"""

# Python Built-Ins:
from math import ceil

# Local Dependencies:
from .constants import EXCHANGE_TOKEN_RATIO
from .utils import round_half_up


def tokens_per_exchange(output_tokens: int) -> int:
    """Estimated tokens added to the chat history per turn: One AI response plus a user message"""
    return round_half_up(output_tokens * EXCHANGE_TOKEN_RATIO)


def history_at_turn(turn: int, history_cap: int, output_tokens: int) -> int:
    """Chat history tokens sent on a given (1-based) turn, before any summarization"""
    if turn <= 1:
        return 0
    return min((turn - 1) * tokens_per_exchange(output_tokens), history_cap)


def avg_history_tokens(history_cap: float, turns: int, output_tokens: int) -> float:
    """Average history tokens sent per turn over a conversation of `turns` turns

    History ramps up by `tokens_per_exchange` per turn from zero, and stays at `history_cap` once
    reached.
    """
    if turns <= 0 or history_cap <= 0:
        return 0
    tpe = tokens_per_exchange(output_tokens)
    if tpe <= 0:
        return history_cap
    ramp_turns = min(ceil(history_cap / tpe), turns)
    ramp_sum = tpe * ramp_turns * (ramp_turns - 1) / 2
    capped_sum = history_cap * max(0, turns - ramp_turns)
    return (ramp_sum + capped_sum) / turns


def effective_instruction_tokens(
    instruction_tokens: int, turns: int, output_tokens: int, conversational: bool
) -> float:
    """Per-request instruction tokens: The flat value, or the graduated history average in chats"""
    if not conversational:
        return instruction_tokens
    return avg_history_tokens(instruction_tokens, turns, output_tokens)


def effective_submission_tokens(
    submission_tokens: int, turns: int, progressive: bool
) -> float:
    """Average per-request submission tokens: Half the final length for progressive submissions"""
    if not progressive or turns <= 1:
        return submission_tokens
    return submission_tokens / 2


def submission_tokens_at_turn(
    turn: int, turns: int, submission_tokens: int, progressive: bool
) -> int:
    """Submission tokens sent on a given (1-based) turn"""
    if not progressive or turns <= 1:
        return submission_tokens
    if turn <= 1:
        return 0
    return round_half_up((turn - 1) / (turns - 1) * submission_tokens)
