from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from modreg.core.manifest.models import ModuleRecord
from modreg.core.tenants.models import TenantModuleState


class RegistryStorage(ABC):
    """
    Narrow persistence contract for the module store and the tenant-state
    table. Implementations must be safe to call from several threads; the
    registry itself serializes writes that touch global invariants.
    """

    # ---- modules ----
    @abstractmethod
    def save_module(self, record: ModuleRecord) -> None: ...

    @abstractmethod
    def get_module(self, module_id: str) -> Optional[ModuleRecord]: ...

    @abstractmethod
    def list_modules(self) -> List[ModuleRecord]: ...

    @abstractmethod
    def delete_module(self, module_id: str) -> bool: ...

    # ---- tenant state ----
    @abstractmethod
    def save_tenant_state(self, state: TenantModuleState) -> None: ...

    @abstractmethod
    def get_tenant_state(self, tenant_id: str, module_id: str) -> Optional[TenantModuleState]: ...

    @abstractmethod
    def list_tenant_states(self, tenant_id: Optional[str] = None) -> List[TenantModuleState]:
        """All states of one tenant, or of every tenant when `tenant_id` is None."""

    @abstractmethod
    def clear(self) -> None: ...
