"""
Operator configuration

Sources, lowest to highest precedence:
  1. defaults below
  2. operator.yaml (optional)
  3. environment / .env
"""
import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigError
from .poller import CHUNK_SIZE

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("operator.yaml")

# field name -> environment variable
ENV_VARS = {
    'rpc_url': 'RPC_URL',
    'private_key': 'PRIVATE_KEY',
    'chain_id': 'CHAIN_ID',
    'service_manager_address': 'SERVICE_MANAGER_ADDRESS',
    'deployment_file': 'DEPLOYMENT_FILE',
    'valuation_api_url': 'VALUATION_API_URL',
    'valuation_api_key': 'VALUATION_API_KEY',
    'valuation_timeout_seconds': 'VALUATION_TIMEOUT_SECONDS',
    'poll_interval_seconds': 'POLL_INTERVAL_SECONDS',
    'chunk_size': 'BLOCK_CHUNK_SIZE',
    'gas_limit': 'RESPONSE_GAS_LIMIT',
    'receipt_timeout_seconds': 'RECEIPT_TIMEOUT_SECONDS',
    'rpc_timeout_seconds': 'RPC_TIMEOUT_SECONDS',
    'failure_threshold': 'FAILURE_THRESHOLD',
    'start_block': 'START_BLOCK',
    'log_level': 'LOG_LEVEL',
}


@dataclass
class OperatorConfig:
    rpc_url: str = ""
    private_key: str = field(default="", repr=False)
    chain_id: Optional[int] = None
    service_manager_address: str = ""
    deployment_file: Optional[str] = None
    valuation_api_url: str = ""
    valuation_api_key: Optional[str] = field(default=None, repr=False)
    valuation_timeout_seconds: float = 30.0

    poll_interval_seconds: float = 10.0
    chunk_size: int = CHUNK_SIZE
    gas_limit: int = 1_500_000
    receipt_timeout_seconds: float = 120.0
    rpc_timeout_seconds: float = 30.0
    failure_threshold: int = 3
    start_block: Optional[int] = None

    log_level: str = "INFO"

    @classmethod
    def load(cls, path: Optional[Path] = None, env: Optional[Dict[str, str]] = None) -> "OperatorConfig":
        """Build config from yaml + environment, then resolve the deployment file."""
        if env is None:
            load_dotenv()
            env = dict(os.environ)

        values: Dict[str, Any] = {}

        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        if config_path.exists():
            with open(config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ConfigError(f"{config_path} must contain a mapping")
            known = {f.name for f in fields(cls)}
            unknown = set(loaded) - known
            if unknown:
                logger.warning(f"Ignoring unknown keys in {config_path}: {', '.join(sorted(unknown))}")
            values.update({k: v for k, v in loaded.items() if k in known})
        elif path:
            raise ConfigError(f"Config file not found: {config_path}")

        for name, var in ENV_VARS.items():
            raw = env.get(var)
            if raw is not None and raw.strip() != "":
                values[name] = raw.strip().strip('"').strip("'")

        config = cls(**cls._coerce(values))
        config._resolve_deployment()
        return config

    @classmethod
    def _coerce(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        ints = {'chain_id', 'chunk_size', 'gas_limit', 'failure_threshold', 'start_block'}
        floats = {'poll_interval_seconds', 'receipt_timeout_seconds', 'rpc_timeout_seconds',
                  'valuation_timeout_seconds'}
        coerced = {}
        for name, value in values.items():
            try:
                if name in ints and value is not None:
                    coerced[name] = int(value)
                elif name in floats and value is not None:
                    coerced[name] = float(value)
                else:
                    coerced[name] = value
            except (TypeError, ValueError):
                raise ConfigError(f"{name} must be numeric, got {value!r}")
        return coerced

    def _resolve_deployment(self):
        """Fill service_manager_address from deployments/<chain_id>.json when not set."""
        if self.service_manager_address:
            return
        deployment = self.deployment_file
        if not deployment and self.chain_id is not None:
            deployment = f"deployments/{self.chain_id}.json"
        if not deployment:
            return

        deployment_path = Path(deployment)
        if not deployment_path.exists():
            if self.deployment_file:
                raise ConfigError(f"Deployment file not found: {deployment_path}")
            return

        try:
            with open(deployment_path, 'r') as f:
                data = json.load(f)
            self.service_manager_address = data['addresses']['serviceManager']
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ConfigError(f"{deployment_path} has no addresses.serviceManager: {e}")
        logger.info(f"Service manager {self.service_manager_address} loaded from {deployment_path}")

    @property
    def normalized_private_key(self) -> str:
        key = self.private_key
        if key and not key.startswith('0x'):
            key = '0x' + key
        return key

    def validate(self) -> "OperatorConfig":
        problems: List[str] = []
        if not self.rpc_url:
            problems.append("RPC_URL is required")
        if not self.private_key:
            problems.append("PRIVATE_KEY is required")
        elif not self._is_hex_key(self.normalized_private_key):
            problems.append("PRIVATE_KEY must be 32 bytes of hex")
        if not self.service_manager_address:
            problems.append("SERVICE_MANAGER_ADDRESS is required (or a deployment file with addresses.serviceManager)")
        if not self.valuation_api_url:
            problems.append("VALUATION_API_URL is required")
        if self.poll_interval_seconds <= 0:
            problems.append("POLL_INTERVAL_SECONDS must be > 0")
        if not 1 <= self.chunk_size <= CHUNK_SIZE:
            problems.append(f"BLOCK_CHUNK_SIZE must be between 1 and {CHUNK_SIZE}")
        if self.gas_limit < 21000:
            problems.append("RESPONSE_GAS_LIMIT must be >= 21000")
        if self.failure_threshold < 1:
            problems.append("FAILURE_THRESHOLD must be >= 1")
        if self.start_block is not None and self.start_block < 0:
            problems.append("START_BLOCK must be >= 0")

        if problems:
            raise ConfigError("Invalid operator configuration:\n  - " + "\n  - ".join(problems))
        return self

    @staticmethod
    def _is_hex_key(key: str) -> bool:
        if len(key) != 66:
            return False
        try:
            bytes.fromhex(key[2:])
        except ValueError:
            return False
        return True

    @property
    def initial_watermark(self) -> Optional[int]:
        if self.start_block is None:
            return None
        return self.start_block - 1
