"""YAML config loading with env var expansion."""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import TokenProofConfig

# ${VAR} or ${VAR:-fallback}
_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def _candidate_paths(cli_path: str | None) -> list[Path]:
    if cli_path:
        path = Path(cli_path)
        if not path.exists():
            raise ValueError(f"Config file not found: {cli_path}")
        return [path]
    return [Path("./tokenproof.yaml"), Path.home() / ".tokenproof" / "config.yaml"]


def load_config(cli_path: str | None = None) -> TokenProofConfig:
    """Load config with resolution order: CLI > project-local > user-global > defaults.

    An explicit *cli_path* must exist; the other locations are optional.
    """
    for path in _candidate_paths(cli_path):
        if not path.exists():
            continue
        try:
            raw = yaml.safe_load(path.read_text())
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if raw is None:
            continue
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid config in {path}: top level must be a mapping")
        try:
            return TokenProofConfig.model_validate(_expand_env_vars(raw))
        except ValidationError as e:
            raise ValueError(f"Invalid config in {path}: {e}") from e

    return TokenProofConfig()


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} and ${VAR:-fallback} references in strings."""
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(2) or ""), obj)
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `tokenproof config init`
DEFAULT_CONFIG_TEMPLATE = """\
# tokenproof.yaml

# Token record store
database:
  path: "data/tokens.db"
  timeout: 5.0

# Tree building
tree:
  chains: [ETH, ARB, BASE, POL]   # any of ETH | ARB | BASE | POL | AVAX
  page_size: 100000

# Record source retries (exponential backoff)
retry:
  max_attempts: 3
  base_delay: 1.0
  max_delay: 30.0

# Snapshot generations
snapshots:
  directory: "merkle_trees"
  keep_generations: 2

# HTTP server
server:
  host: "0.0.0.0"
  port: 3000
  cors_origins: ["*"]
  rebuild_on_start: false       # ignore snapshots and rebuild at startup

# Logging
log_level: "info"               # debug | info | warn | error
"""
