from __future__ import annotations

"""
JSON-file storage.

Two documents under `root_dir`:
  modules.json        {"schema_version": 1, "modules": {module_id: manifest+registeredAt}}
  tenant_states.json  {"schema_version": 1, "tenants": {tenant_id: {module_id: state}}}

Every write replaces the whole document atomically and keeps rotating
pre-write backups. Reads are served from memory after the initial load.
"""

import os
import threading
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from modreg.core.config.io import atomic_write_json, read_json_file
from modreg.core.errors import StorageError
from modreg.core.manifest.models import ModuleRecord
from modreg.core.storage.base import RegistryStorage
from modreg.core.tenants.models import TenantModuleState

SCHEMA_VERSION = 1


class JsonFileStorage(RegistryStorage):
    def __init__(self, root_dir: str, *, backups_dir: Optional[str] = None, max_backups: int = 10):
        self.root_dir = str(root_dir)
        self.backups_dir = backups_dir or os.path.join(self.root_dir, "backups")
        self.max_backups = int(max_backups)
        self.modules_path = os.path.join(self.root_dir, "modules.json")
        self.tenants_path = os.path.join(self.root_dir, "tenant_states.json")
        self._lock = threading.Lock()
        self._modules: Dict[str, ModuleRecord] = {}
        self._tenants: Dict[str, Dict[str, TenantModuleState]] = {}
        self._load()

    # ---- load / flush ----
    def _read(self, path: str) -> Dict[str, Any]:
        rr = read_json_file(path)
        if not rr.ok:
            if rr.error == "missing":
                return {}
            raise StorageError(f"registry file unreadable: {rr.error}", path=path)
        version = rr.data.get("schema_version", SCHEMA_VERSION)
        if version != SCHEMA_VERSION:
            raise StorageError("registry file schema_version mismatch.", path=path, schema_version=version)
        return rr.data

    def _load(self) -> None:
        modules_raw = self._read(self.modules_path).get("modules") or {}
        tenants_raw = self._read(self.tenants_path).get("tenants") or {}
        try:
            modules = {mid: ModuleRecord.model_validate(doc) for mid, doc in modules_raw.items()}
            tenants = {
                tid: {mid: TenantModuleState.model_validate(st) for mid, st in (states or {}).items()}
                for tid, states in tenants_raw.items()
            }
        except (AttributeError, ValidationError) as e:
            raise StorageError("registry file contains invalid records.", root_dir=self.root_dir) from e
        for mid, rec in modules.items():
            if rec.module_id != mid:
                raise StorageError("module record keyed under the wrong id.", key=mid, module_id=rec.module_id)
        self._modules = modules
        self._tenants = tenants

    def _modules_doc(self, modules: Dict[str, ModuleRecord]) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "modules": {mid: rec.model_dump(mode="json", by_alias=True, exclude_none=True) for mid, rec in modules.items()},
        }

    def _tenants_doc(self, tenants: Dict[str, Dict[str, TenantModuleState]]) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "tenants": {tid: {mid: st.model_dump(mode="json") for mid, st in states.items()} for tid, states in tenants.items()},
        }

    def _write(self, path: str, build: Callable[[], Dict[str, Any]]) -> None:
        """
        Serialize and write one document. In-memory state is only swapped by
        the caller after this returns, so a failure leaves it untouched.
        """
        try:
            atomic_write_json(path, build(), self.backups_dir, max_backups=self.max_backups)
        except Exception as e:  # noqa: BLE001
            raise StorageError(f"failed to write {os.path.basename(path)}", error=str(e)) from e

    # ---- modules ----
    def save_module(self, record: ModuleRecord) -> None:
        record = record.model_copy(deep=True)
        with self._lock:
            staged = dict(self._modules)
            staged[record.module_id] = record
            self._write(self.modules_path, lambda: self._modules_doc(staged))
            self._modules = staged

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
            if module_id not in self._modules:
                return False
            staged = {mid: rec for mid, rec in self._modules.items() if mid != module_id}
            self._write(self.modules_path, lambda: self._modules_doc(staged))
            self._modules = staged
            return True

    # ---- tenant state ----
    def save_tenant_state(self, state: TenantModuleState) -> None:
        with self._lock:
            staged = {tid: dict(states) for tid, states in self._tenants.items()}
            staged.setdefault(state.tenant_id, {})[state.module_id] = state
            self._write(self.tenants_path, lambda: self._tenants_doc(staged))
            self._tenants = staged

    def get_tenant_state(self, tenant_id: str, module_id: str) -> Optional[TenantModuleState]:
        with self._lock:
            return (self._tenants.get(tenant_id) or {}).get(module_id)

    def list_tenant_states(self, tenant_id: Optional[str] = None) -> List[TenantModuleState]:
        with self._lock:
            if tenant_id is None:
                return [st for states in self._tenants.values() for st in states.values()]
            return list((self._tenants.get(tenant_id) or {}).values())

    def clear(self) -> None:
        with self._lock:
            self._write(self.modules_path, lambda: self._modules_doc({}))
            self._write(self.tenants_path, lambda: self._tenants_doc({}))
            self._modules = {}
            self._tenants = {}
