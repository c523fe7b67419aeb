# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Parameter sweeps: Which strategy is cheapest as one workload parameter varies?

A sweep re-costs every candidate strategy at each point of a sample grid for one parameter, and
runs in two separate passes:

1. Each point is costed independently, and its raw winner picked by cost then by a fixed tie-break
   order (see `Strategy.tiebreak_rank`).
2. `stabilize_winners()` scans the points in ascending order: Wherever the two cheapest strategies
   are within `TIE_EPSILON` of each other, the run of near-tied points takes the winner of the
   first decisive point after it - so a rendered "cheapest strategy" band doesn't flicker between
   numerically indistinguishable options.

Crossovers are then reported wherever the stabilized winner changes.
"""

# Python Built-Ins:
from __future__ import annotations
from dataclasses import dataclass, field, replace
import logging
import os
from typing import Sequence

# External Dependencies:
import jmespath
from tqdm.auto import tqdm

# Local Dependencies:
from .constants import FALLBACK_COLOR, SWEEP_NUM_POINTS, TIE_EPSILON
from .pricing import PriceList
from .serde import JSONableBase
from .strategies import CostModel, Strategy, SUMMARY_STRATEGIES
from .utils import round_half_up, safe_divide, summary_stats_from_list
from .workload import WorkloadParameter, WorkloadSpec

logger = logging.getLogger(__name__)

# using a custom env variable because the TQDM one (https://github.com/tqdm/tqdm/issues/612#issuecomment-2015702344) doesn't work reliably
_disable_tqdm = False
if os.getenv("LLMCOSTSIM_DISABLE_ALL_PROGRESS_BARS") == "1":
    logger.info("Disabling tqdm progress bars")
    _disable_tqdm = True

# Reference sample points per parameter. Sweeps interpolate between each list's min and max.
SAMPLE_POINTS: dict[WorkloadParameter, tuple[int, ...]] = {
    WorkloadParameter.STUDENTS: (5, 10, 15, 20, 30, 50, 75, 100, 150, 200),
    WorkloadParameter.TURNS_PER_STUDENT: (1, 5, 10, 20, 50, 75, 100, 150, 200),
    WorkloadParameter.SYSTEM_TOKENS: (100, 500, 1000, 2000, 5000, 10000),
    WorkloadParameter.SHARED_CONTEXT_TOKENS: (500, 1000, 2000, 5000, 10000, 25000, 50000, 100000),
    WorkloadParameter.SUBMISSION_TOKENS: (100, 500, 1000, 2000, 5000, 10000, 20000),
    WorkloadParameter.INSTRUCTION_TOKENS: (50, 200, 500, 1000, 2000, 5000, 10000),
    WorkloadParameter.OUTPUT_TOKENS: (100, 500, 1000, 2000, 5000, 10000),
}


def sweep_grid(
    parameter: WorkloadParameter | str,
    current_value: int | None = None,
    num_points: int = SWEEP_NUM_POINTS,
) -> list[int]:
    """Strictly increasing sample values for `parameter`, including `current_value` if given"""
    reference = SAMPLE_POINTS[WorkloadParameter(parameter)]
    low, high = min(reference), max(reference)
    if num_points < 2:
        values = {low}
    else:
        step = (high - low) / (num_points - 1)
        values = {round_half_up(low + step * i) for i in range(num_points)}
    if current_value is not None:
        values.add(current_value)
    return sorted(values)


def select_strategies(
    workload: WorkloadSpec,
    include_submission_cache: bool = True,
    include_batch: bool = False,
) -> list[Strategy]:
    """Default candidate strategies for a workload

    Summarizing workloads compare the three summarization variants, others compare no-caching vs
    the per-assignment cache. The per-submission cache and batch inference are optional extras.
    """
    if workload.summarization_active:
        strategies = list(SUMMARY_STRATEGIES)
    else:
        strategies = [Strategy.NO_CACHING, Strategy.ASSIGNMENT_CACHE]
    if include_submission_cache:
        strategies.append(Strategy.SUBMISSION_CACHE)
    if include_batch:
        strategies.append(Strategy.BATCH)
    return strategies


@dataclass(frozen=True)
class SweepPoint(JSONableBase):
    """Costs of every candidate strategy at one value of the swept parameter"""

    value: int
    costs: dict[Strategy, float]
    winner: Strategy | None = None
    winner_color: str = FALLBACK_COLOR
    is_current: bool = False

    @property
    def tie_gap(self) -> float:
        """Cost difference between the two cheapest strategies (`inf` with fewer than two)"""
        ordered = sorted(self.costs.values())
        if len(ordered) < 2:
            return float("inf")
        return ordered[1] - ordered[0]

    @classmethod
    def from_dict(cls, raw: dict, **kwargs) -> SweepPoint:
        raw_args = {**raw}
        raw_args["costs"] = {Strategy(k): v for k, v in raw_args.get("costs", {}).items()}
        if raw_args.get("winner") is not None:
            raw_args["winner"] = Strategy(raw_args["winner"])
        return super().from_dict(raw_args, **kwargs)


@dataclass(frozen=True)
class Crossover(JSONableBase):
    """The cheapest strategy changes between the previous point and the point at `value`"""

    index: int
    value: int
    previous_winner: Strategy | None
    winner: Strategy | None


@dataclass(frozen=True)
class SweepResult(JSONableBase):
    """Ordered (ascending) sweep points for one parameter, with crossover markers"""

    parameter: WorkloadParameter
    points: tuple[SweepPoint, ...] = ()
    crossovers: tuple[Crossover, ...] = ()
    strategies: tuple[Strategy, ...] = field(default=())

    @property
    def values(self) -> list[int]:
        return [p.value for p in self.points]

    @property
    def winners(self) -> list[Strategy | None]:
        return [p.winner for p in self.points]

    @property
    def current_point(self) -> SweepPoint | None:
        return next((p for p in self.points if p.is_current), None)

    def _costs_data(self) -> list[dict[str, float]]:
        return [{s.value: cost for s, cost in p.costs.items()} for p in self.points]

    def series(
        self, strategy: Strategy | str, costs_data: list[dict[str, float]] | None = None
    ) -> list[float]:
        """Total cost of one strategy at each point where it was costed, in ascending order"""
        if costs_data is None:
            costs_data = self._costs_data()
        key = Strategy(strategy).value
        return jmespath.search(f"[].{key}", costs_data) or []

    @property
    def stats(self) -> dict[str, dict[str, float]]:
        """Summary statistics of each strategy's total cost across the sweep"""
        costs_data = self._costs_data()
        return {
            s.value: summary_stats_from_list(self.series(s, costs_data))
            for s in self.strategies
        }

    @classmethod
    def from_dict(cls, raw: dict, **kwargs) -> SweepResult:
        raw_args = {**raw}
        raw_args["parameter"] = WorkloadParameter(raw_args["parameter"])
        raw_args["points"] = tuple(SweepPoint.from_dict(p) for p in raw_args.get("points", []))
        raw_args["crossovers"] = tuple(
            Crossover(
                index=c["index"],
                value=c["value"],
                previous_winner=c["previous_winner"] and Strategy(c["previous_winner"]),
                winner=c["winner"] and Strategy(c["winner"]),
            )
            for c in raw_args.get("crossovers", [])
        )
        raw_args["strategies"] = tuple(Strategy(s) for s in raw_args.get("strategies", []))
        return super().from_dict(raw_args, **kwargs)


def pick_winner(costs: dict[Strategy, float]) -> Strategy | None:
    """Cheapest strategy, with exact ties broken by `Strategy.tiebreak_rank`"""
    if not costs:
        return None
    return min(costs.items(), key=lambda kv: (kv[1], kv[0].tiebreak_rank))[0]


def stabilize_winners(
    points: Sequence[SweepPoint], epsilon: float = TIE_EPSILON
) -> list[SweepPoint]:
    """Resolve runs of near-tied points to the winner of the first decisive point after them

    A point is near-tied if its two cheapest strategies differ by less than `epsilon`. If a run
    of near-tied points extends to the end of the sweep, it takes the winner of the last point.
    Points must be in ascending parameter order.
    """
    result = list(points)
    i = 0
    while i < len(result):
        if result[i].tie_gap >= epsilon:
            i += 1
            continue
        j = i + 1
        while j < len(result) and result[j].tie_gap < epsilon:
            j += 1
        resolved = result[j] if j < len(result) else result[-1]
        logger.debug(
            "Near-tie over points %s-%s resolved to %s", i, j - 1, resolved.winner
        )
        for k in range(i, j):
            result[k] = replace(
                result[k], winner=resolved.winner, winner_color=resolved.winner_color
            )
        i = j
    return result


def find_crossovers(points: Sequence[SweepPoint]) -> list[Crossover]:
    return [
        Crossover(
            index=i,
            value=points[i].value,
            previous_winner=points[i - 1].winner,
            winner=points[i].winner,
        )
        for i in range(1, len(points))
        if points[i].winner != points[i - 1].winner
    ]


def sweep_parameter(
    parameter: WorkloadParameter | str,
    workload: WorkloadSpec,
    cost_model: CostModel,
    strategies: Sequence[Strategy] | None = None,
    grid: Sequence[int] | None = None,
    include_submission_cache: bool = True,
    include_batch: bool = False,
    epsilon: float = TIE_EPSILON,
    show_progress: bool = False,
) -> SweepResult:
    """Find the cheapest strategy at each sample value of one workload parameter

    Args:
        parameter: The workload parameter to vary
        workload: The current workload. Its value of `parameter` is always included in the grid.
        cost_model: Calculator for the selected model's prices
        strategies: Candidate strategies. By default, chosen by `select_strategies()` - in which
            case models without caching support produce an empty result.
        grid: Sample values. Defaults to `sweep_grid(parameter, ...)`. The current value is added
            if missing, and the grid is sorted and de-duplicated.
        include_submission_cache: Passed to `select_strategies()` if `strategies` is not set
        include_batch: Passed to `select_strategies()` if `strategies` is not set
        epsilon: Absolute cost gap below which two strategies are treated as tied
        show_progress: Set `True` to display a progress bar
    """
    parameter = WorkloadParameter(parameter)
    current_value = workload.get_parameter(parameter)
    if strategies is None:
        if not cost_model.prices.capabilities.supports_caching:
            logger.info("Model doesn't support caching: Skipping %s sweep", parameter.value)
            return SweepResult(parameter=parameter)
        strategies = select_strategies(workload, include_submission_cache, include_batch)
    strategies = tuple(Strategy(s) for s in strategies)
    if grid is None:
        values = sweep_grid(parameter, current_value)
    else:
        values = sorted(set(grid) | {current_value})

    raw_points = []
    for value in tqdm(
        values,
        desc=f"Sweeping {parameter.value}",
        disable=_disable_tqdm or not show_progress,
    ):
        point_workload = workload.with_parameter(parameter, value)
        costs = {s: cost_model.calculate(s, point_workload).total for s in strategies}
        winner = pick_winner(costs)
        raw_points.append(
            SweepPoint(
                value=value,
                costs=costs,
                winner=winner,
                winner_color=winner.color if winner else FALLBACK_COLOR,
                is_current=value == current_value,
            )
        )

    points = stabilize_winners(raw_points, epsilon=epsilon)
    return SweepResult(
        parameter=parameter,
        points=tuple(points),
        crossovers=tuple(find_crossovers(points)),
        strategies=strategies,
    )


@dataclass(frozen=True)
class TornadoBar(JSONableBase):
    """Cost change (in percent of the baseline) from halving or doubling one parameter"""

    parameter: WorkloadParameter
    current: int
    half: int
    double: int
    half_delta_pct: float
    double_delta_pct: float


def _halved(parameter: WorkloadParameter, value: int) -> int:
    if parameter == WorkloadParameter.SHARED_CONTEXT_TOKENS:
        return max(min(500, value - 1), round_half_up(value / 2))
    return max(1, round_half_up(value / 2))


def default_tornado_strategy(workload: WorkloadSpec, prices: PriceList) -> Strategy:
    if workload.summarization_active:
        if prices.capabilities.supports_caching:
            return Strategy.SUMMARY_CACHE_PREFIX
        return Strategy.SUMMARY_NO_CACHE
    return Strategy.ASSIGNMENT_CACHE


TORNADO_PARAMETERS = (
    WorkloadParameter.STUDENTS,
    WorkloadParameter.TURNS_PER_STUDENT,
    WorkloadParameter.SHARED_CONTEXT_TOKENS,
    WorkloadParameter.SUBMISSION_TOKENS,
    WorkloadParameter.INSTRUCTION_TOKENS,
    WorkloadParameter.OUTPUT_TOKENS,
)


def tornado_sensitivity(
    workload: WorkloadSpec,
    cost_model: CostModel,
    strategy: Strategy | str | None = None,
    parameters: Sequence[WorkloadParameter] = TORNADO_PARAMETERS,
) -> list[TornadoBar]:
    """How much one strategy's total cost moves when each parameter is halved or doubled

    Results are sorted by the magnitude of the doubling effect, largest first. An empty list is
    returned if the baseline cost is zero.
    """
    if strategy is None:
        strategy = default_tornado_strategy(workload, cost_model.prices)
    strategy = Strategy(strategy)
    baseline = cost_model.calculate(strategy, workload).total
    if baseline == 0:
        return []

    bars = []
    for parameter in parameters:
        current = workload.get_parameter(parameter)
        half = _halved(parameter, current)
        double = current * 2
        half_cost = cost_model.calculate(strategy, workload.with_parameter(parameter, half)).total
        double_cost = cost_model.calculate(
            strategy, workload.with_parameter(parameter, double)
        ).total
        bars.append(
            TornadoBar(
                parameter=parameter,
                current=current,
                half=half,
                double=double,
                half_delta_pct=safe_divide(half_cost - baseline, baseline) * 100,
                double_delta_pct=safe_divide(double_cost - baseline, baseline) * 100,
            )
        )
    return sorted(bars, key=lambda b: abs(b.double_delta_pct), reverse=True)
