"""
Configuration for the delegate relayer.
"""
import os
import json
import logging
import urllib.parse
from pathlib import Path
from typing import Dict, Any, Optional, List, Mapping

import tomli
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "RELAYER_"
DEFAULT_STORE_PATH = "~/.delegate-relayer/requests.json"


class RelayerConfig(BaseModel):
    """
    Settings shared by the reconciler, publisher, stores and worker.

    Values are passed explicitly to each component; nothing reads the
    process environment after loading.
    """
    rpc_url: str = "http://localhost:8545"
    private_key: Optional[str] = Field(None, repr=False)
    contract_abi_path: Optional[str] = None
    store_path: str = DEFAULT_STORE_PATH
    lock_path: Optional[str] = None
    required_confirmations: int = Field(2, ge=1)
    default_expires_at_seconds: int = Field(86400, gt=0)
    max_publish_attempts: int = Field(32, ge=1)
    poll_interval: float = Field(15.0, gt=0)
    rpc_timeout: int = Field(30, gt=0)
    rpc_retry_count: int = Field(3, ge=0)

    @field_validator("rpc_url")
    @classmethod
    def _require_https(cls, url: str) -> str:
        parsed = urllib.parse.urlparse(url)
        # Check if it's a localhost or 127.0.0.1 address (with or without port)
        host = parsed.netloc.split(':')[0] if parsed.netloc else ''
        is_local = host in ('localhost', '127.0.0.1')
        if parsed.scheme != 'https' and not is_local:
            raise ValueError(f"rpc_url must use https:// for security (got: {parsed.scheme}://)")
        return url

    @property
    def resolved_store_path(self) -> Path:
        return Path(os.path.expanduser(self.store_path))

    @property
    def resolved_lock_path(self) -> Path:
        if self.lock_path:
            return Path(os.path.expanduser(self.lock_path))
        return self.resolved_store_path.with_name(self.resolved_store_path.name + ".pass.lock")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "RelayerConfig":
        """
        Build a config from a plain mapping, converting validation errors.

        Raises:
            ConfigError: If a value is missing or invalid
        """
        try:
            return cls.model_validate(dict(values))
        except ValidationError as e:
            raise ConfigError(f"Invalid relayer configuration: {e}") from e

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RelayerConfig":
        """
        Load configuration from RELAYER_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            RelayerConfig with defaults for anything not set
        """
        return cls.from_mapping(cls._env_values(environ))

    @classmethod
    def _env_values(cls, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Raw values of the RELAYER_* variables that are set and non-empty"""
        environ = os.environ if environ is None else environ
        values: Dict[str, str] = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in environ and environ[key] != "":
                values[name] = environ[key]
        return values

    @classmethod
    def from_toml(cls, path: str, environ: Optional[Mapping[str, str]] = None) -> "RelayerConfig":
        """
        Load configuration from the [relayer] table of a TOML file.

        Environment variables override file values, so secrets such as
        the private key can stay out of the file.

        Raises:
            ConfigError: If the file cannot be read or parsed
        """
        try:
            with open(path, "rb") as f:
                data = tomli.load(f)
        except (OSError, tomli.TOMLDecodeError) as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e

        values = dict(data.get("relayer", {}))
        overrides = cls._env_values(environ)
        values.update(overrides)
        logger.debug(f"Loaded relayer config from {path} ({len(overrides)} env overrides)")
        return cls.from_mapping(values)

    def load_contract_abi(self) -> List[Dict[str, Any]]:
        """
        Read the contract ABI the relayer calls into.

        Accepts either a bare ABI list or a compiler artifact with an
        "abi" key.

        Raises:
            ConfigError: If no path is configured or the file is invalid
        """
        if not self.contract_abi_path:
            raise ConfigError("contract_abi_path is not configured")

        try:
            with open(os.path.expanduser(self.contract_abi_path), "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read contract ABI {self.contract_abi_path}: {e}") from e

        if isinstance(data, dict):
            data = data.get("abi")
        if not isinstance(data, list):
            raise ConfigError(f"Contract ABI in {self.contract_abi_path} must be a list")
        return data
