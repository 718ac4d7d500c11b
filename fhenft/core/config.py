"""
Engine configuration parameters.

Defines the engine's contract identity, the trusted oracle and operator
identities, settlement mode switches and operational paths.

Values come from defaults, then an optional dotenv file, then ``FHENFT_*``
environment variables (highest precedence).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

from fhenft.crypto import hex_to_bytes, normalize_address

ENV_PREFIX = "FHENFT_"

# Identity the engine uses for custody and for binding encrypted inputs
DEFAULT_CONTRACT_ADDRESS = "0x00000000000000000000000000000000000fe7a1"


@dataclass
class EngineConfig:
    """Engine-wide configuration parameters"""

    # Identities
    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    oracle_address: Optional[str] = None
    oracle_public_key: Optional[bytes] = None
    operator_address: Optional[str] = None

    # Settlement
    degraded_mode_enabled: bool = False  # Allow operator close without the oracle

    # Keeper / relay
    keeper_interval: float = 10.0  # Seconds between keeper sweeps
    relay_latency: float = 0.0  # Simulated oracle latency in seconds

    # Paths
    data_dir: Path = field(default_factory=lambda: Path("data"))
    log_dir: Path = field(default_factory=lambda: Path("logs"))
    db_name: str = "auctions.db"

    def __post_init__(self):
        self.contract_address = normalize_address(self.contract_address)
        if self.oracle_address is not None:
            self.oracle_address = normalize_address(self.oracle_address)
        if self.operator_address is not None:
            self.operator_address = normalize_address(self.operator_address)
        if self.oracle_public_key is not None and len(self.oracle_public_key) != 64:
            raise ValueError("oracle_public_key must be 64 bytes")
        self.data_dir = Path(self.data_dir)
        self.log_dir = Path(self.log_dir)

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    def ensure_directories(self) -> None:
        """Create necessary directories"""
        self.data_dir.mkdir(exist_ok=True, parents=True)
        self.log_dir.mkdir(exist_ok=True, parents=True)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


_PARSERS = {
    "contract_address": str,
    "oracle_address": str,
    "oracle_public_key": hex_to_bytes,
    "operator_address": str,
    "degraded_mode_enabled": _parse_bool,
    "keeper_interval": float,
    "relay_latency": float,
    "data_dir": Path,
    "log_dir": Path,
    "db_name": str,
}


def _collect(raw: Dict[str, Optional[str]]) -> Dict[str, object]:
    values = {}
    for key, value in raw.items():
        if value is None or not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        parser = _PARSERS.get(name)
        if parser is None:
            continue
        values[name] = parser(value)
    return values


def load_config(config_path: Optional[str] = None, **overrides) -> EngineConfig:
    """
    Load configuration from a dotenv file and the environment.

    Args:
        config_path: Optional path to a dotenv file
        **overrides: Explicit values that win over file and environment

    Returns:
        EngineConfig instance

    Raises:
        FileNotFoundError: If config_path is given but does not exist
    """
    values: Dict[str, object] = {}

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        values.update(_collect(dotenv_values(path)))

    values.update(_collect(dict(os.environ)))
    values.update(overrides)

    return EngineConfig(**values)
