from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TenantModuleStatus(str, Enum):
    absent = "absent"
    enabled = "enabled"
    disabled = "disabled"


class TenantModuleState(BaseModel):
    """
    Per (tenant, module) enablement record. Created lazily on first enable.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    tenant_id: str = Field(min_length=1)
    module_id: str = Field(min_length=1)
    enabled: bool = False
    enabled_at: Optional[str] = None
    disabled_at: Optional[str] = None
    updated_at: str = ""

    @property
    def status(self) -> TenantModuleStatus:
        return TenantModuleStatus.enabled if self.enabled else TenantModuleStatus.disabled


class TransitionCheck(BaseModel):
    """
    Non-mutating preview of an enable/disable call.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    allowed: bool
    reason_code: str = ""
    blocking_modules: List[str] = Field(default_factory=list)
