# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Turn-by-turn simulation of chat history with periodic summarization

Instead of sending a sliding window of chat history capped at some size, a conversation can be
periodically *summarized*: Whenever the history would reach the cap, an extra LLM call compresses
it into a fixed-size summary which replaces it, and the history grows again from there.
"""

# Python Built-Ins:
from __future__ import annotations
from dataclasses import dataclass
from math import ceil

# Local Dependencies:
from .accumulation import tokens_per_exchange
from .serde import JSONableBase


@dataclass(frozen=True)
class SummarizationTrace(JSONableBase):
    """Result of simulating one actor's conversation with periodic summarization

    Attributes:
        history_per_turn: History tokens sent on each turn (index 0 is turn 1)
        summarization_turns: The (1-based) turns after which a summarization call was made
        total_history_tokens_sent: Sum of `history_per_turn`
        avg_history_per_turn: Mean of `history_per_turn`
        num_summarizations: Number of summarization calls per actor
        turns_per_cycle: Steady-state number of turns between consecutive summarizations
    """

    history_per_turn: tuple[int, ...] = ()
    summarization_turns: tuple[int, ...] = ()
    total_history_tokens_sent: int = 0
    avg_history_per_turn: float = 0
    num_summarizations: int = 0
    turns_per_cycle: int = 0

    @classmethod
    def from_dict(cls, raw: dict, **kwargs) -> SummarizationTrace:
        raw_args = {**raw}
        for key in ("history_per_turn", "summarization_turns"):
            if key in raw_args:
                raw_args[key] = tuple(raw_args[key])
        return super().from_dict(raw_args, **kwargs)


def simulate_summarization(
    turns: int,
    history_cap: int,
    output_tokens: int,
    summary_size: int,
) -> SummarizationTrace:
    """Simulate history growth over `turns` turns, summarizing whenever `history_cap` is reached

    Each turn sends the current history, which then grows by one exchange. If the grown history
    reaches the cap (and the conversation isn't over), it is summarized down to `summary_size`.
    """
    tpe = tokens_per_exchange(output_tokens)
    if tpe <= 0 or turns <= 0 or history_cap <= 0:
        return SummarizationTrace()

    history_per_turn: list[int] = []
    summarization_turns: list[int] = []
    history = 0
    total = 0
    for t in range(1, turns + 1):
        history_per_turn.append(history)
        total += history
        history += tpe
        if history >= history_cap and t < turns:
            summarization_turns.append(t)
            history = summary_size

    return SummarizationTrace(
        history_per_turn=tuple(history_per_turn),
        summarization_turns=tuple(summarization_turns),
        total_history_tokens_sent=total,
        avg_history_per_turn=total / turns,
        num_summarizations=len(summarization_turns),
        turns_per_cycle=ceil((history_cap - summary_size) / tpe),
    )


@dataclass(frozen=True)
class PrefixTurn:
    """How one turn is billed when the latest summary is folded into the cached prefix

    Attributes:
        turn: 1-based turn number
        write: True if the cached prefix must be (re-)written this turn, False if it's read
        prefix_tokens: Tokens in the cached prefix this turn (shared prefix, plus summary once one
            exists)
        fresh_history_tokens: History tokens sent as fresh input (excluding any cached summary)
    """

    turn: int
    write: bool
    prefix_tokens: int
    fresh_history_tokens: int


def cache_in_prefix_turns(
    trace: SummarizationTrace,
    shared_prefix_tokens: int,
    summary_size: int,
    turns: int | None = None,
) -> list[PrefixTurn]:
    """Second pass over a trace, for the strategy that caches each new summary in the prefix

    The prefix is written on turn 1, and again on each turn right after a summarization (because
    the summary at the end of the prefix changed). Other turns read it. Once a summary is cached,
    it no longer counts towards the fresh history tokens.

    Args:
        trace: Output of `simulate_summarization()`
        shared_prefix_tokens: Tokens of the prefix shared by all actors
        summary_size: Tokens in each summary
        turns: Number of turns to bill. Defaults to the trace length. Turns missing from the trace
            (e.g. all of them, for a degenerate empty trace) are treated as having no history.
    """
    if turns is None:
        turns = len(trace.history_per_turn)
    event_turns = set(trace.summarization_turns)
    has_summary = False
    result = []
    for i in range(turns):
        turn = i + 1
        history = trace.history_per_turn[i] if i < len(trace.history_per_turn) else 0
        just_summarized = turn > 1 and (turn - 1) in event_turns
        if just_summarized:
            has_summary = True
        result.append(
            PrefixTurn(
                turn=turn,
                write=turn == 1 or just_summarized,
                prefix_tokens=shared_prefix_tokens + (summary_size if has_summary else 0),
                fresh_history_tokens=(
                    max(0, history - summary_size) if has_summary else history
                ),
            )
        )
    return result
