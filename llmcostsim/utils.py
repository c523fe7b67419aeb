# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from decimal import ROUND_HALF_UP, Decimal
from itertools import filterfalse
from math import isnan
from statistics import mean, median
from typing import Sequence


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with halves rounded away from zero

    Python's built-in `round()` uses banker's rounding (`round(2.5) == 2`), which would shift
    token estimates at exact .5 boundaries. Token counts in this package always round .5 up.
    """
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Divide `numerator` by `denominator`, or return `default` if the denominator is zero"""
    if not denominator:
        return default
    return numerator / denominator


def summary_stats_from_list(data: Sequence[int | float]) -> dict[str, int | float]:
    """Average, spread and median of a sequence of numbers, ignoring NaNs

    Returns an empty dict if there's no data.
    """
    clean_data = list(filterfalse(isnan, data))
    if not clean_data:
        return {}
    return {
        "average": mean(clean_data),
        "min": min(clean_data),
        "max": max(clean_data),
        "p50": median(clean_data),
    }
