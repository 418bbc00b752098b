"""Configuration system for vibecoin-wallet.

Loads settings from ``~/.vibecoin/config.yaml`` (or ``$VIBECOIN_HOME``),
supports environment variable expansion, and falls back to defaults when no
file exists.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

# Where the earlier standalone tool kept its single wallet file.
LEGACY_STORE_PATH = "~/.vibecoin-mcp/wallet.json"


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    ``${VAR:-fallback}`` uses *fallback* when the variable is unset. A plain
    placeholder for an unset variable is left as-is so that validation can
    catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name, fallback = match.group(1), match.group(2)
        if var_name in os.environ:
            return os.environ[var_name]
        return fallback if fallback is not None else match.group(0)

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class WalletConfig(BaseModel):
    """Keystore location and chain settings."""

    layout: Literal["single", "multi"] = "single"
    data_dir: Optional[str] = None          # defaults to the root dir
    store_file: str = "wallet.json"
    legacy_store_path: Optional[str] = LEGACY_STORE_PATH  # single layout only; "" disables
    chain: str = "ethereum"
    rpc_url: Optional[str] = None           # overrides the chain's default RPC
    confirmation_timeout: float = 120.0
    fee_hook_address: Optional[str] = None  # skip the API lookup when set
    vesting_address: Optional[str] = None


class ApiConfig(BaseModel):
    """Launch service endpoint."""

    base_url: str = "${LAUNCHER_API_URL:-https://vibecoin.up.railway.app}"
    timeout: float = 30.0


class LoggingConfig(BaseModel):
    level: str = "WARNING"


class AppConfig(BaseModel):
    """Root configuration object."""

    wallet: WalletConfig = Field(default_factory=WalletConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def store_path(self, root: Path | None = None) -> Path:
        base = Path(self.wallet.data_dir).expanduser() if self.wallet.data_dir else get_root_dir(root)
        return base / self.wallet.store_file

    def legacy_path(self) -> Path | None:
        if not self.wallet.legacy_store_path:
            return None
        return Path(self.wallet.legacy_store_path).expanduser()


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def get_root_dir(base: Path | None = None) -> Path:
    """Return the ``.vibecoin/`` root directory (no auto-create).

    Parameters
    ----------
    base:
        Directory that contains (or will contain) the root folder. Defaults
        to ``$VIBECOIN_HOME`` if set, otherwise the user's home directory.
    """
    if base is None:
        env_home = os.environ.get("VIBECOIN_HOME")
        if env_home:
            return Path(env_home).expanduser()
        base = Path.home()
    return base / ".vibecoin"


def default_config_path(base: Path | None = None) -> Path:
    return get_root_dir(base) / "config.yaml"


def load_config(path: Path) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation.
    """
    raw_text = path.read_text(encoding="utf-8")
    raw_data = yaml.safe_load(raw_text) or {}
    expanded = _expand_env_recursive(raw_data)
    config = AppConfig.model_validate(expanded)
    config.api.base_url = _expand_env_vars(config.api.base_url)
    return config


def load_or_default(path: Path | None = None) -> AppConfig:
    """Load *path* (or the default config file) if it exists, else defaults."""
    path = path or default_config_path()
    if path.exists():
        return load_config(path)
    config = AppConfig()
    config.api.base_url = _expand_env_vars(config.api.base_url)
    return config


def save_config(config: AppConfig, path: Path) -> None:
    """Serialize an :class:`AppConfig` to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="python", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)
