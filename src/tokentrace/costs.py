# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""Per-model token pricing.

Rates are USD per single token. The built-in catalog is read-only; each
CostTable carries its own override map, consulted first on every lookup.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Mapping, NamedTuple

logger = logging.getLogger("tokentrace")


class ModelRate(NamedTuple):
    """Price per input token and per output token, same currency unit."""

    input: float
    output: float


_PER_MILLION = 1_000_000

MODEL_COSTS: Mapping[str, ModelRate] = MappingProxyType(
    {
        # OpenAI
        "gpt-4o": ModelRate(2.50 / _PER_MILLION, 10.00 / _PER_MILLION),
        "gpt-4o-mini": ModelRate(0.15 / _PER_MILLION, 0.60 / _PER_MILLION),
        "gpt-4-turbo": ModelRate(10.00 / _PER_MILLION, 30.00 / _PER_MILLION),
        # Anthropic
        "claude-sonnet-4-5-20250929": ModelRate(3.00 / _PER_MILLION, 15.00 / _PER_MILLION),
        "claude-haiku-4-5-20251001": ModelRate(0.80 / _PER_MILLION, 4.00 / _PER_MILLION),
        # MiniMax
        "MiniMax-M1": ModelRate(0.40 / _PER_MILLION, 2.20 / _PER_MILLION),
        "MiniMax-Text-01": ModelRate(0.20 / _PER_MILLION, 1.10 / _PER_MILLION),
        # Kimi
        "kimi-k2": ModelRate(0.60 / _PER_MILLION, 2.50 / _PER_MILLION),
        "moonshot-v1-8k": ModelRate(0.20 / _PER_MILLION, 2.00 / _PER_MILLION),
    }
)


class CostTable:
    """Resolves per-token rates for a model and computes call cost.

    Lookup order: instance override, then MODEL_COSTS, then no rate (cost 0).
    Model names match exactly; there is no prefix or family matching.
    """

    def __init__(self, overrides: Mapping[str, ModelRate] | None = None) -> None:
        self._overrides: dict[str, ModelRate] = dict(overrides or {})

    def set_rate(self, model: str, rate: ModelRate) -> None:
        """Override (or add) the rate for ``model`` on this table only."""
        self._overrides[model] = ModelRate(float(rate[0]), float(rate[1]))

    def rate_for(self, model: str) -> ModelRate | None:
        rate = self._overrides.get(model)
        if rate is None:
            rate = MODEL_COSTS.get(model)
        return rate

    def compute(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """Cost of a call: input_tokens x input rate + output_tokens x output rate."""
        rate = self.rate_for(model)
        if rate is None:
            logger.debug("No pricing for model %r, recording cost 0", model)
            return 0.0
        return input_tokens * rate.input + output_tokens * rate.output

    @property
    def overrides(self) -> dict[str, ModelRate]:
        """Copy of this table's override map."""
        return dict(self._overrides)

    def __repr__(self) -> str:
        return f"CostTable(overrides={len(self._overrides)}, builtin={len(MODEL_COSTS)})"
