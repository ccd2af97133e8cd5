from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StorageBackend(str, Enum):
    memory = "memory"
    json = "json"


class RegistryConfig(BaseModel):
    """
    Registry configuration (config/registry.json).

    `module_id_prefix` is the fixed leading segment of every module id. Empty
    means ids are `<class>-<slug>`; "webwaka" means `webwaka-<class>-<slug>`.
    `log_dir` is where `build_registry` points the rotating log file; empty
    leaves logging to the host.
    """

    model_config = ConfigDict(extra="forbid")

    module_id_prefix: str = Field(default="", max_length=32)
    max_dependency_depth: int = Field(default=256, ge=1, le=10_000)
    storage_backend: StorageBackend = StorageBackend.memory
    storage_dir: str = "runtime/registry"
    log_dir: str = "logs"

    @field_validator("module_id_prefix")
    @classmethod
    def _prefix_safe(cls, v: str) -> str:
        v = str(v or "").strip()
        if v and not re.fullmatch(r"[a-z][a-z0-9]*", v):
            raise ValueError("module_id_prefix must be a single lowercase alphanumeric segment")
        return v
