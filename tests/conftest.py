# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest

from llmcostsim.pricing import ModelCapabilities, PriceList
from llmcostsim.strategies import CostModel
from llmcostsim.workload import WorkloadSpec


@pytest.fixture
def caching_prices() -> PriceList:
    """Anthropic-like pricing: Cache writes at 1.25x input, reads at 0.1x input"""
    return PriceList(
        input_price=0.003,
        output_price=0.015,
        cache_write_price_5min=0.00375,
        cache_read_price=0.0003,
        batch_input_price=0.0015,
        batch_output_price=0.0075,
        capabilities=ModelCapabilities(supports_caching=True, supports_batch=True),
    )


@pytest.fixture
def plain_prices() -> PriceList:
    """A model with no caching or batch support"""
    return PriceList(input_price=0.0008, output_price=0.0032)


@pytest.fixture
def scenario() -> WorkloadSpec:
    return WorkloadSpec(
        students=30,
        turns_per_student=5,
        system_tokens=1000,
        shared_context_tokens=15000,
        submission_tokens=2000,
        instruction_tokens=500,
        output_tokens=1000,
    )


@pytest.fixture
def cost_model(caching_prices) -> CostModel:
    return CostModel(prices=caching_prices)
