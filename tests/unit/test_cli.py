"""
Test the command line interface (rctdprobe.cli)
"""
import json

from click.testing import CliRunner

from rctdprobe.cli import cli


def test_run_nnls():
    runner = CliRunner()
    result = runner.invoke(cli, ["run", "--method", "nnls", "--no-env"])
    assert result.exit_code == 0, result.output
    assert "rna_proportion" in result.output
    assert "Cell-fraction hypothesis" in result.output
    assert "Normalized weights" in result.output


def test_run_writes_json(tmp_path):
    output = tmp_path / "summary.json"
    runner = CliRunner()
    result = runner.invoke(
        cli, ["run", "--method", "nnls", "--no-env", "--json", str(output)]
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(output.read_text())
    assert payload["interpretation"]["verdict"] == "rna_proportion"
    assert payload["environment"] is None


def test_run_writes_plot(tmp_path):
    output = tmp_path / "weights.png"
    runner = CliRunner()
    result = runner.invoke(
        cli, ["run", "--method", "nnls", "--no-env", "--plot", str(output)]
    )
    assert result.exit_code == 0, result.output
    assert output.exists()


def test_single_replicate_fails_cleanly():
    runner = CliRunner()
    result = runner.invoke(cli, ["run", "--replicates", "1", "--no-env"])
    assert result.exit_code == 1
    assert "InsufficientReplicatesError" in result.output


def test_invalid_tolerance():
    runner = CliRunner()
    result = runner.invoke(
        cli, ["run", "--method", "nnls", "--no-env", "--tolerance", "2"]
    )
    assert result.exit_code == 2


def test_env_json():
    runner = CliRunner()
    result = runner.invoke(cli, ["env", "--format", "json", "--no-r"])
    assert result.exit_code == 0, result.output
    start = result.output.index("{")
    report, _ = json.JSONDecoder().raw_decode(result.output[start:])
    assert report["critical_dependencies"]["numpy"]["available"]
    assert "r" not in report


def test_env_table():
    runner = CliRunner()
    result = runner.invoke(cli, ["env", "--no-r"])
    assert result.exit_code == 0, result.output
    assert "Packages" in result.output
