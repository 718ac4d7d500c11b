"""
Unit tests for the command line interface.
"""

from click.testing import CliRunner

from fhenft.cli.main import cli


def test_demo_runs_to_claim(tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli, ["demo", "--data-dir", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Winner: Alice" in result.output
    assert "Winning amount: 20" in result.output
    assert "AssetClaimed" in result.output
    assert (tmp_path / "auctions.db").exists()

    inspected = runner.invoke(cli, ["inspect", "--data-dir", str(tmp_path), "--events"])
    assert inspected.exit_code == 0, inspected.output
    assert "SETTLED" in inspected.output
    assert "AuctionSettled" in inspected.output


def test_inspect_missing_database(tmp_path):
    result = CliRunner().invoke(cli, ["inspect", "--data-dir", str(tmp_path)])
    assert result.exit_code != 0
    assert "No database" in result.output


def test_config_reads_env_file(tmp_path, monkeypatch):
    for key in ("FHENFT_OPERATOR_ADDRESS", "FHENFT_DEGRADED_MODE_ENABLED"):
        monkeypatch.delenv(key, raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("FHENFT_OPERATOR_ADDRESS=0x" + "0a" * 20 + "\nFHENFT_DEGRADED_MODE_ENABLED=true\n")

    result = CliRunner().invoke(cli, ["--env-file", str(env_file), "config"])
    assert result.exit_code == 0, result.output
    assert "operator_address: 0x" + "0a" * 20 in result.output
    assert "degraded_mode_enabled: True" in result.output
