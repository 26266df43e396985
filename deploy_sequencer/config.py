"""Environment configuration for the deployment sequencer."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SequencerConfig:
    rpc_url: str = "http://localhost:8545"
    private_key: Optional[str] = None
    chain_id: Optional[int] = None
    artifacts_dir: str = "artifacts"
    runs_dir: str = os.path.join("deployments", "runs")
    receipt_timeout: int = 300
    gas_limit: Optional[int] = None
    poa_middleware: bool = False
    log_file: Optional[str] = None
    log_level: str = "INFO"
    slack_webhook: Optional[str] = None

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SequencerConfig":
        """Load settings from the environment, reading a .env file first"""
        load_dotenv(env_file)
        defaults = cls()
        return cls(
            rpc_url=os.getenv("RPC_URL", defaults.rpc_url),
            private_key=os.getenv("PRIVATE_KEY") or None,
            chain_id=_int_env("CHAIN_ID", None),
            artifacts_dir=os.getenv("ARTIFACTS_DIR", defaults.artifacts_dir),
            runs_dir=os.getenv("RUNS_DIR", defaults.runs_dir),
            receipt_timeout=_int_env("RECEIPT_TIMEOUT", defaults.receipt_timeout),
            gas_limit=_int_env("GAS_LIMIT", None),
            poa_middleware=_bool_env("POA_MIDDLEWARE"),
            log_file=os.getenv("LOG_FILE") or None,
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            slack_webhook=os.getenv("SLACK_WEBHOOK") or None,
        )

    def require_private_key(self) -> str:
        if not self.private_key:
            raise ConfigError("PRIVATE_KEY not found in environment or .env file")
        return self.private_key
