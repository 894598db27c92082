from .loader import load_config
from .models import (
    DatabaseConfig,
    RetryConfig,
    ServerConfig,
    SnapshotConfig,
    TokenProofConfig,
    TreeConfig,
)

__all__ = [
    "DatabaseConfig",
    "RetryConfig",
    "ServerConfig",
    "SnapshotConfig",
    "TokenProofConfig",
    "TreeConfig",
    "load_config",
]
