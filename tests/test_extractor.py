"""
Tests for extracting next-stage inputs from a RunResult.

These tests verify:
    - K x (K-1) logits relative to the chosen reference class
    - Class column rename and recoding of saved data
    - MissingRequestedOutput instead of partial results
"""

from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from conftest import assigned_classes, make_output_text
from threestep.errors import ConfigurationMismatch, MissingRequestedOutput
from threestep.extractor import (
    extract_class_proportions,
    extract_logit_matrix,
    extract_saved_data,
    proportion_shift,
    reference_last_mapping,
)
from threestep.output_parser import parse_output_text


@pytest.fixture
def step1_result():
    result = parse_output_text(make_output_text())
    frame = pd.DataFrame(
        {
            "U1": [1.0, 0.0, 1.0, 0.0, 1.0, 0.0],
            "D1": [1.2, np.nan, 0.4, -0.3, 2.2, 0.0],
            "C": assigned_classes(6, 3).astype(float),
        }
    )
    return replace(result, savedata=frame)


class TestExtractLogitMatrix:

    def test_default_reference_drops_last_column(self, step1_result):
        logits = extract_logit_matrix(step1_result)

        assert logits.shape == (3, 2)
        assert logits.reference_class == 3
        assert logits.categories == (1, 2)
        assert logits.value(1, 1) == 3.245
        assert logits.value(3, 2) == -2.001

    def test_re_referenced_on_first_class(self, step1_result):
        logits = extract_logit_matrix(step1_result, reference_class=1)

        assert logits.reference_class == 1
        assert logits.categories == (2, 3)
        assert logits.row(1) == pytest.approx((1.012 - 3.245, -3.245))
        assert logits.row(2) == pytest.approx((2.567 + 1.234, 1.234))

    def test_reference_out_of_range(self, step1_result):
        with pytest.raises(ConfigurationMismatch):
            extract_logit_matrix(step1_result, reference_class=4)

    def test_missing_logits_table(self):
        result = parse_output_text(make_output_text(include_logits=False))
        with pytest.raises(MissingRequestedOutput):
            extract_logit_matrix(result)

    def test_no_class_counts_at_all(self):
        result = parse_output_text("THE MODEL ESTIMATION TERMINATED NORMALLY\n")
        with pytest.raises(MissingRequestedOutput):
            extract_logit_matrix(result)


class TestExtractSavedData:

    def test_class_column_renamed(self, step1_result):
        saved = extract_saved_data(step1_result)

        assert "N" in saved.columns
        assert "C" not in saved.columns
        assert saved.class_column == "N"
        assert saved.frame["N"].dtype == np.int64
        assert saved.class_domain() == [1, 2, 3]
        assert saved.missing_value == 999
        assert saved.category_map == {1: 1, 2: 2, 3: 3}

    def test_result_frame_untouched(self, step1_result):
        extract_saved_data(step1_result)
        assert "C" in step1_result.savedata.columns

    def test_case_insensitive_class_column(self, step1_result):
        saved = extract_saved_data(step1_result, class_column="c", rename_to="MLC")
        assert saved.class_column == "MLC"
        assert saved.class_domain() == [1, 2, 3]

    def test_recoded_so_reference_is_last(self, step1_result):
        saved = extract_saved_data(step1_result, reference_class=1)

        assert saved.category_map == {2: 1, 3: 2, 1: 3}
        # Cases assigned 1, 2, 3, 1, 2, 3
        assert list(saved.frame["N"]) == [3, 1, 2, 3, 1, 2]

    def test_missing_savedata(self):
        result = parse_output_text(make_output_text())
        with pytest.raises(MissingRequestedOutput):
            extract_saved_data(result)

    def test_missing_class_column(self, step1_result):
        result = replace(step1_result, savedata=step1_result.savedata.drop(columns=["C"]))
        with pytest.raises(MissingRequestedOutput):
            extract_saved_data(result)

    def test_rename_collision(self, step1_result):
        with pytest.raises(ConfigurationMismatch):
            extract_saved_data(step1_result, rename_to="U1")


class TestReferenceLastMapping:

    def test_identity_when_reference_is_last(self):
        assert reference_last_mapping(3, 3) == {1: 1, 2: 2, 3: 3}

    def test_middle_reference(self):
        assert reference_last_mapping(4, 2) == {1: 1, 3: 2, 4: 3, 2: 4}


class TestClassProportions:

    def test_most_likely(self, step1_result):
        assert extract_class_proportions(step1_result) == {1: 0.35, 2: 0.40, 3: 0.25}

    def test_estimated(self, step1_result):
        assert extract_class_proportions(step1_result, basis="estimated") == {1: 0.35, 2: 0.40, 3: 0.25}

    def test_unknown_basis(self, step1_result):
        with pytest.raises(ValueError):
            extract_class_proportions(step1_result, basis="posterior")

    def test_missing_counts(self):
        result = parse_output_text("THE MODEL ESTIMATION TERMINATED NORMALLY\n")
        with pytest.raises(MissingRequestedOutput):
            extract_class_proportions(result)

    def test_shift(self):
        assert proportion_shift({1: 0.3, 2: 0.7}, {1: 0.35, 2: 0.65}) == pytest.approx(0.05)

    def test_shift_needs_same_classes(self):
        with pytest.raises(ConfigurationMismatch):
            proportion_shift({1: 0.5, 2: 0.5}, {1: 0.3, 2: 0.3, 3: 0.4})
