"""Tests for pinning stage-1 logits into per-class statements."""

import pytest

from threestep.backends.mplus_generator import render_statement
from threestep.errors import ConfigurationMismatch
from threestep.interpolator import fixed_logit_statements, interpolate_logits
from threestep.results import LogitMatrix
from threestep.statements import FixedMean


LOGITS = LogitMatrix(
    values=((3.245, 1.012), (-1.234, 2.567), (-4.123, -2.001)),
    reference_class=3,
    categories=(1, 2),
)


class TestFixedLogitStatements:

    def test_one_statement_per_non_reference_category(self):
        stmts = fixed_logit_statements(LOGITS, 2)
        assert stmts == (
            FixedMean("N", 1, -1.234),
            FixedMean("N", 2, 2.567),
        )

    def test_custom_indicator_name(self):
        stmts = fixed_logit_statements(LOGITS, 1, indicator="MLC")
        assert [render_statement(s) for s in stmts] == ["[MLC#1@3.245];", "[MLC#2@1.012];"]

    @pytest.mark.parametrize("class_index", [0, -1, 4])
    def test_class_index_outside_range(self, class_index):
        with pytest.raises(IndexError):
            fixed_logit_statements(LOGITS, class_index)


class TestInterpolateLogits:

    def test_every_class_gets_k_minus_one_constants(self):
        fixed = interpolate_logits(LOGITS, 3)
        assert list(fixed) == [1, 2, 3]
        assert all(len(stmts) == 2 for stmts in fixed.values())
        assert fixed[3][1].value == -2.001

    def test_idempotent(self):
        first = interpolate_logits(LOGITS, 3)
        second = interpolate_logits(LOGITS, 3)
        assert first == second

        def render(fixed):
            return "\n".join(render_statement(s) for k in sorted(fixed) for s in fixed[k])

        assert render(first) == render(second)

    @pytest.mark.parametrize("k", [2, 4, 5])
    def test_class_count_mismatch(self, k):
        with pytest.raises(ConfigurationMismatch):
            interpolate_logits(LOGITS, k)

    def test_single_class_rejected(self):
        with pytest.raises(ConfigurationMismatch):
            interpolate_logits(LOGITS, 1)
