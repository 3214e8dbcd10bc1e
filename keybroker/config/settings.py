"""Broker settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Storage backend for config and role records
    storage_backend: str = "memory"  # "memory" | "json" | "dynamodb"
    storage_path: str = "broker-storage.json"  # path for the json backend
    dynamodb_table_name: str = "balena-key-broker"
    aws_region: str = "us-east-1"

    # Upstream balena API
    # Fallback master credential when neither the role nor the config holds one
    upstream_master_token: str = ""
    upstream_timeout: float = 30.0

    # Lease policy (seconds)
    default_lease_ttl: int = 768 * 3600
    max_lease_ttl: int = 768 * 3600
    revoke_strict: bool = False  # propagate failed upstream deletes on revoke

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
