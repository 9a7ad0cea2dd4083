"""Tests for the threestep command line."""

import logging

import pytest

from threestep.cli import main


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("threestep")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


@pytest.fixture
def cli_files(tmp_path, sample_data):
    config = tmp_path / "pipeline.yaml"
    config.write_text(
        "output_dir: runs\n"
        "indicators: [u1, u2, u3]\n"
        "covariates: [x1]\n"
        "distal_outcomes: [d1]\n"
        "starts: [100, 20]\n",
        encoding="utf-8",
    )
    data = tmp_path / "data.csv"
    sample_data.to_csv(data, index=False)
    return config, data


def test_render(cli_files, tmp_path, capsys):
    config, data = cli_files
    assert main(["render", str(config), str(data)]) == 0

    out = tmp_path / "runs"
    assert (out / "step1.inp").exists()
    assert (out / "step1.dat").exists()
    assert not (out / "step1.out").exists()
    assert "step1.inp" in capsys.readouterr().out


def test_render_yaml(cli_files, capsys):
    config, data = cli_files
    assert main(["render", str(config), str(data), "--yaml"]) == 0
    assert "name: step1" in capsys.readouterr().out


def test_run(cli_files, tmp_path, fake_mplus, capsys):
    config, data = cli_files
    log_file = tmp_path / "logs" / "run.log"
    assert main(["--log-file", str(log_file), "run", str(config), str(data)]) == 0

    assert len(fake_mplus.calls) == 3
    printed = capsys.readouterr().out
    assert "N#1" in printed
    assert "step3" in printed
    assert "Submitting step1" in log_file.read_text(encoding="utf-8")


def test_errors_reported_not_raised(tmp_path, capsys):
    assert main(["render", str(tmp_path / "absent.yaml"), str(tmp_path / "data.csv")]) == 1
    assert "error:" in capsys.readouterr().err


def test_missing_data_file(cli_files, tmp_path, capsys):
    config, _ = cli_files
    assert main(["render", str(config), str(tmp_path / "absent.csv")]) == 1
    assert "Data file not found" in capsys.readouterr().err


def test_empty_data_file(cli_files, tmp_path, capsys):
    config, _ = cli_files
    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    assert main(["render", str(config), str(empty)]) == 1
    assert "Could not read data file" in capsys.readouterr().err


def test_engine_missing(cli_files, capsys):
    config, data = cli_files
    config.write_text(
        config.read_text(encoding="utf-8") + "engine_command: threestep-no-such-engine-xyz\n",
        encoding="utf-8",
    )
    assert main(["run", str(config), str(data)]) == 1
    assert "not found" in capsys.readouterr().err
