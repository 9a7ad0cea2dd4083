"""
Tests for the bundled example data and configuration.
"""

import logging

from threestep.backends.mplus_generator import MAX_LINE_LENGTH, generate_input
from threestep.builder import build_measurement_spec
from threestep.examples import build_example_config, simulate_example_data
from threestep.logging_utils import setup_logging
from threestep.pipeline import ThreeStepPipeline


def test_simulated_data_shape():
    data = simulate_example_data(n=200)
    assert list(data.columns) == ["u1", "u2", "u3", "u4", "u5", "x1", "x2", "d1"]
    assert len(data) == 200
    assert set(data["u1"].unique()) <= {0.0, 1.0}
    assert data["d1"].isna().any()


def test_simulated_data_deterministic():
    assert simulate_example_data(n=50, seed=1).equals(simulate_example_data(n=50, seed=1))
    assert not simulate_example_data(n=50, seed=1).equals(simulate_example_data(n=50, seed=2))


def test_example_config(tmp_path):
    config = build_example_config(tmp_path)
    assert config.class_count == 3
    assert config.auxiliaries == ("x1", "x2", "d1")


def test_example_config_resolves_output_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = build_example_config("demo_runs")
    assert config.output_dir.is_absolute()
    assert config.output_dir == (tmp_path / "demo_runs").resolve()


def test_example_renders_within_line_limit(tmp_path):
    config = build_example_config(tmp_path)
    text = generate_input(build_measurement_spec(config, simulate_example_data(n=100)))
    assert all(len(line) <= MAX_LINE_LENGTH for line in text.splitlines())
    assert "SERIES = u1 u2 u3 u4 u5 (*);" in text


def test_example_pipeline(tmp_path, fake_mplus):
    """Five indicators and three auxiliaries give a 3x2 logit matrix and N in {1, 2, 3}."""
    result = ThreeStepPipeline(build_example_config(tmp_path)).run(simulate_example_data(n=120))

    assert result.step1.logits.shape == (3, 2)
    assert result.step1.saved.class_domain() == [1, 2, 3]
    assert result.step1.spec.variables.auxiliary == ("x1", "x2", "d1")
    assert result.step3 is not None
    assert result.step2.spec.variables.usevariables == ("N", "x1", "x2")


def test_setup_logging_file_handler(tmp_path):
    log_file = tmp_path / "nested" / "threestep.log"
    logger = setup_logging(level=logging.DEBUG, log_file=log_file, name="threestep.test")
    try:
        logger.info("hello")
        assert len(logger.handlers) == 2
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
