from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from modreg.core.manifest.models import CapabilityDescriptor, ModuleRecord


class CapabilityResolution(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    capability_id: str
    module_id: str
    capability: CapabilityDescriptor
    module: ModuleRecord
