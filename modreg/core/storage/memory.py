from __future__ import annotations

import threading
from typing import Dict, List, Optional, Tuple

from modreg.core.manifest.models import ModuleRecord
from modreg.core.storage.base import RegistryStorage
from modreg.core.tenants.models import TenantModuleState


class InMemoryStorage(RegistryStorage):
    """
    Dict-backed storage for tests and single-process hosts. Module records
    carry free-form metadata, so they are copied on the way in and out.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._modules: Dict[str, ModuleRecord] = {}
        self._tenant_states: Dict[Tuple[str, str], TenantModuleState] = {}

    def save_module(self, record: ModuleRecord) -> None:
        with self._lock:
            self._modules[record.module_id] = record.model_copy(deep=True)

    def get_module(self, module_id: str) -> Optional[ModuleRecord]:
        with self._lock:
            rec = self._modules.get(module_id)
        return rec.model_copy(deep=True) if rec is not None else None

    def list_modules(self) -> List[ModuleRecord]:
        with self._lock:
            records = list(self._modules.values())
        return [rec.model_copy(deep=True) for rec in records]

    def delete_module(self, module_id: str) -> bool:
        with self._lock:
            return self._modules.pop(module_id, None) is not None

    def save_tenant_state(self, state: TenantModuleState) -> None:
        with self._lock:
            self._tenant_states[(state.tenant_id, state.module_id)] = state

    def get_tenant_state(self, tenant_id: str, module_id: str) -> Optional[TenantModuleState]:
        with self._lock:
            return self._tenant_states.get((tenant_id, module_id))

    def list_tenant_states(self, tenant_id: Optional[str] = None) -> List[TenantModuleState]:
        with self._lock:
            if tenant_id is None:
                return list(self._tenant_states.values())
            return [s for (tid, _mid), s in self._tenant_states.items() if tid == tenant_id]

    def clear(self) -> None:
        with self._lock:
            self._modules.clear()
            self._tenant_states.clear()
