"""
formsave Configuration

Environment configuration for the save worker, audit trail and logging.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class WorkerConfig:
    """Where persistence operations run."""
    max_workers: int = int(os.getenv("FORMSAVE_MAX_WORKERS", "1"))

    # Seconds the CLI waits for a save to finish
    save_timeout: float = float(os.getenv("FORMSAVE_SAVE_TIMEOUT", "30"))


@dataclass
class AuditConfig:
    """Audit trail configuration."""
    log_path: Optional[Path] = (
        Path(os.environ["FORMSAVE_AUDIT_LOG"]) if os.getenv("FORMSAVE_AUDIT_LOG") else None
    )

    # Edits to a saved instance need a reason before they can be saved again
    change_reason_required: bool = _env_flag("FORMSAVE_REASON_REQUIRED", "false")


@dataclass
class Config:
    """Main configuration container."""
    worker: WorkerConfig
    audit: AuditConfig

    log_level: str = os.getenv("FORMSAVE_LOG_LEVEL", "WARNING")

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            worker=WorkerConfig(),
            audit=AuditConfig(),
        )


# Global config instance
config = Config.from_env()
