# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""Tests for model pricing and cost computation."""

import pytest

from tokentrace.costs import MODEL_COSTS, CostTable, ModelRate


def test_builtin_catalog_shape():
    rate = MODEL_COSTS["gpt-4o"]
    assert rate.input == pytest.approx(2.5e-6)
    assert rate.output == pytest.approx(10e-6)
    assert "claude-haiku-4-5-20251001" in MODEL_COSTS
    assert "kimi-k2" in MODEL_COSTS


def test_builtin_catalog_is_read_only():
    with pytest.raises(TypeError):
        MODEL_COSTS["gpt-4o"] = ModelRate(0, 0)  # type: ignore[index]


def test_compute_known_model():
    table = CostTable()
    assert table.compute("gpt-4o", 100, 50) == pytest.approx(0.00075)


def test_compute_unknown_model_is_zero():
    table = CostTable()
    assert table.rate_for("my-local-llama") is None
    assert table.compute("my-local-llama", 1000, 1000) == 0.0


def test_override_beats_builtin():
    table = CostTable()
    table.set_rate("gpt-4o", ModelRate(0.003, 0.01))

    assert table.rate_for("gpt-4o") == ModelRate(0.003, 0.01)
    assert table.compute("gpt-4o", 10, 5) == pytest.approx(10 * 0.003 + 5 * 0.01)
    # The catalog itself is untouched
    assert MODEL_COSTS["gpt-4o"].input == pytest.approx(2.5e-6)


def test_override_adds_custom_model():
    table = CostTable()
    table.set_rate("my-custom-model", (0.001, 0.002))

    assert table.compute("my-custom-model", 1, 1) == pytest.approx(0.003)


def test_overrides_are_per_table():
    first = CostTable()
    second = CostTable()
    first.set_rate("gpt-4o", ModelRate(1.0, 1.0))

    assert second.rate_for("gpt-4o") == MODEL_COSTS["gpt-4o"]
    assert second.overrides == {}
    assert first.overrides == {"gpt-4o": ModelRate(1.0, 1.0)}


def test_model_names_match_exactly():
    table = CostTable()
    assert table.compute("gpt-4o-2024-08-06", 100, 100) == 0.0
