from typing import Literal

from pydantic import BaseModel, Field, field_validator

from tokenproof.chains import DEFAULT_CHAINS, Chain


class DatabaseConfig(BaseModel):
    path: str = "data/tokens.db"
    timeout: float = Field(default=5.0, gt=0)


class TreeConfig(BaseModel):
    chains: list[Chain] = Field(default_factory=lambda: list(DEFAULT_CHAINS))
    page_size: int = Field(default=100_000, gt=0)

    @field_validator("chains")
    @classmethod
    def validate_chains(cls, v: list[Chain]) -> list[Chain]:
        if not v:
            raise ValueError("at least one chain must be configured")
        if len(set(v)) != len(v):
            raise ValueError("chains must not repeat")
        return v


class RetryConfig(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)


class SnapshotConfig(BaseModel):
    directory: str = "merkle_trees"
    keep_generations: int = Field(default=2, ge=1)


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=3000, gt=0, lt=65536)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    rebuild_on_start: bool = False


class TokenProofConfig(BaseModel):
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    tree: TreeConfig = Field(default_factory=TreeConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    snapshots: SnapshotConfig = Field(default_factory=SnapshotConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
