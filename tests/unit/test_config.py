"""
Unit tests for engine configuration loading.
"""

from pathlib import Path

import pytest

from fhenft.core.config import DEFAULT_CONTRACT_ADDRESS, EngineConfig, load_config
from fhenft.crypto import keypair_from_seed

ORACLE = keypair_from_seed(b"oracle")


@pytest.fixture
def clean_env(monkeypatch):
    """Strip FHENFT_* variables from the process environment."""
    import os
    for key in list(os.environ):
        if key.startswith("FHENFT_"):
            monkeypatch.delenv(key)
    return monkeypatch


class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig()
        assert config.contract_address == DEFAULT_CONTRACT_ADDRESS
        assert config.oracle_address is None
        assert config.degraded_mode_enabled is False
        assert config.db_path == Path("data") / "auctions.db"

    def test_addresses_normalized(self):
        config = EngineConfig(operator_address="0x" + "AB" * 20)
        assert config.operator_address == "0x" + "ab" * 20

    def test_bad_address_rejected(self):
        with pytest.raises(ValueError):
            EngineConfig(oracle_address="0x1234")

    def test_bad_public_key_rejected(self):
        with pytest.raises(ValueError):
            EngineConfig(oracle_public_key=b"\x01" * 33)

    def test_ensure_directories(self, tmp_path):
        config = EngineConfig(data_dir=tmp_path / "d", log_dir=tmp_path / "l")
        config.ensure_directories()
        assert (tmp_path / "d").is_dir()
        assert (tmp_path / "l").is_dir()


class TestLoadConfig:

    def test_dotenv_file(self, tmp_path, clean_env):
        env_file = tmp_path / ".env"
        env_file.write_text(
            f"FHENFT_ORACLE_PUBLIC_KEY=0x{ORACLE.public_key.hex()}\n"
            "FHENFT_DEGRADED_MODE_ENABLED=true\n"
            "FHENFT_KEEPER_INTERVAL=2.5\n"
            "UNRELATED=ignored\n"
        )
        config = load_config(str(env_file))
        assert config.oracle_public_key == ORACLE.public_key
        assert config.degraded_mode_enabled is True
        assert config.keeper_interval == 2.5

    def test_environment_wins_over_file(self, tmp_path, clean_env):
        env_file = tmp_path / ".env"
        env_file.write_text("FHENFT_DB_NAME=file.db\n")
        clean_env.setenv("FHENFT_DB_NAME", "env.db")
        assert load_config(str(env_file)).db_name == "env.db"

    def test_overrides_win(self, clean_env):
        clean_env.setenv("FHENFT_RELAY_LATENCY", "1.0")
        assert load_config(relay_latency=0.0).relay_latency == 0.0

    def test_missing_file(self, tmp_path, clean_env):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.env"))
