# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Fixed configuration values shared across the cost engine"""

# Graduated chat history: one AI response plus an estimated user turn of ~25% its length
EXCHANGE_TOKEN_RATIO = 1.25

# Absolute (currency) gap below which two strategy totals are treated as tied in a sweep.
# NOTE: Not scaled to the magnitude of the totals, so very large sweeps may see relatively tiny
# but absolutely large gaps treated as decisive. Candidate for parameterization.
TIE_EPSILON = 0.005

# Number of evenly-spaced points a parameter sweep samples between its grid min and max
SWEEP_NUM_POINTS = 40

# Guardrails pricing, charged per 1,000 "text units" of 1,000 characters each
CHARS_PER_TOKEN = 4
GUARDRAILS_COST_PER_1K_UNITS = 0.15

# Price multipliers for provider service tiers
TIER_MULTIPLIERS = {
    "standard": 1.0,
    "priority": 1.75,
    "flex": 0.5,
}

# Optimal chat-history cap search range (tokens)
OPTIMAL_HISTORY_MARGIN = 100
OPTIMAL_HISTORY_MAX = 10000
OPTIMAL_HISTORY_STEP = 50

CHART_COLORS = {
    "no_caching": "#f97316",
    "cache_prefix": "#3b82f6",
    "cache_submission": "#10b981",
    "batch": "#a855f7",
}
FALLBACK_COLOR = "#999"
