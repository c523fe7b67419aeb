# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Cost modelling for LLM inference workloads under different prompt caching strategies"""

from .breakeven import analyze_summarization, break_even_turns, optimal_history_cap
from .pricing import ModelPricing, PriceList, PricingCatalog
from .report import compare_strategies, per_turn_costs
from .sensitivity import sweep_parameter, tornado_sensitivity
from .strategies import CostBreakdown, CostModel, Strategy, calculate_cost
from .summarization import simulate_summarization
from .workload import TEMPLATES, WorkloadParameter, WorkloadSpec, workload_from_template

__all__ = [
    "analyze_summarization",
    "break_even_turns",
    "calculate_cost",
    "compare_strategies",
    "CostBreakdown",
    "CostModel",
    "ModelPricing",
    "optimal_history_cap",
    "per_turn_costs",
    "PriceList",
    "PricingCatalog",
    "simulate_summarization",
    "Strategy",
    "sweep_parameter",
    "TEMPLATES",
    "tornado_sensitivity",
    "workload_from_template",
    "WorkloadParameter",
    "WorkloadSpec",
]
