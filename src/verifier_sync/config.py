"""Runtime configuration for the sync engine."""

import os
from pathlib import Path

from pydantic import BaseModel, Field

ENV_PREFIX = "VERIFIER_SYNC_"


class SyncConfig(BaseModel):
    """Settings shared by the HTTP client, the stores and the engine.

    Example:
        config = SyncConfig(data_dir="./state", timeout=10)
        config = SyncConfig.from_env()  # reads VERIFIER_SYNC_* variables
    """

    base_url: str = "https://get.dgc.gov.it/v1/dgc"
    data_dir: Path = Path("./data")
    timeout: int = 30
    pool_connections: int = 10
    pool_maxsize: int = 10
    user_agent: str = "verifier-sync/0.1.0"
    max_resets: int = Field(default=1, ge=0)

    @property
    def state_file(self) -> Path:
        return self.data_dir / ".sync_state.json"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "verifier.db"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> "SyncConfig":
        """Build a config from ``VERIFIER_SYNC_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``
            **overrides: Explicit values that win over the environment

        Returns:
            Validated SyncConfig
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = f"{ENV_PREFIX}{name.upper()}"
            if key in environ:
                values[name] = environ[key]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
