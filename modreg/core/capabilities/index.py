from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from modreg.core.capabilities.models import CapabilityResolution
from modreg.core.errors import CapabilityConflictError, CapabilityNotFoundError, InvalidCapabilityIdError
from modreg.core.manifest.models import CapabilityDescriptor, ModuleManifest, ModuleRecord
from modreg.core.manifest.validator import is_valid_capability_id

_Binding = Tuple[CapabilityDescriptor, ModuleRecord]


class CapabilityIndex:
    """
    Capability id -> owning module, globally unique.

    Writes are copy-on-success: a new mapping is built off to the side and
    swapped in only once every id in the batch is known to be free, so readers
    never observe a half-registered module.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("modreg.capabilities")
        self._lock = threading.Lock()
        self._bindings: Dict[str, _Binding] = {}
        self._by_module: Dict[str, Tuple[str, ...]] = {}

    # ---- writes ----
    def find_conflicts(self, module: ModuleManifest) -> Dict[str, str]:
        """
        Phase one: capability id -> current owner, for every id bound elsewhere.
        """
        bindings = self._bindings
        out: Dict[str, str] = {}
        for cap in module.capabilities:
            hit = bindings.get(cap.id)
            if hit is not None and hit[1].module_id != module.module_id:
                out[cap.id] = hit[1].module_id
        return out

    def register_capabilities(self, module: ModuleRecord) -> List[str]:
        module = module.model_copy(deep=True)
        with self._lock:
            conflicts = self.find_conflicts(module)
            if conflicts:
                raise CapabilityConflictError(module.module_id, conflicts)
            staged = dict(self._bindings)
            for stale in self._by_module.get(module.module_id, ()):
                staged.pop(stale, None)
            for cap in module.capabilities:
                staged[cap.id] = (cap, module)
            owned = tuple(cap.id for cap in module.capabilities)
            by_module = dict(self._by_module)
            by_module[module.module_id] = owned
            self._bindings, self._by_module = staged, by_module
        self.logger.debug("bound %d capabilities to %s", len(owned), module.module_id)
        return list(owned)

    def unregister(self, module_id: str) -> List[str]:
        with self._lock:
            owned = self._by_module.get(module_id)
            if owned is None:
                return []
            staged = dict(self._bindings)
            for cap_id in owned:
                hit = staged.get(cap_id)
                if hit is not None and hit[1].module_id == module_id:
                    del staged[cap_id]
            by_module = dict(self._by_module)
            del by_module[module_id]
            self._bindings, self._by_module = staged, by_module
        return list(owned)

    def rebuild(self, records: Iterable[ModuleRecord]) -> None:
        """
        Re-derive every binding from committed records, e.g. after loading a
        persistent store. Conflicting records are a corrupt store.
        """
        with self._lock:
            self._bindings = {}
            self._by_module = {}
        for rec in records:
            self.register_capabilities(rec)

    def clear(self) -> None:
        with self._lock:
            self._bindings = {}
            self._by_module = {}

    # ---- reads ----
    def resolve(self, capability_id: str) -> CapabilityResolution:
        if not is_valid_capability_id(capability_id):
            raise InvalidCapabilityIdError(capability_id)
        hit = self._bindings.get(capability_id)
        if hit is None:
            raise CapabilityNotFoundError(capability_id)
        cap, rec = hit
        return CapabilityResolution(
            capability_id=capability_id,
            module_id=rec.module_id,
            capability=cap,
            module=rec.model_copy(deep=True),
        )

    def has_capability(self, capability_id: str) -> bool:
        return capability_id in self._bindings

    def owner_of(self, capability_id: str) -> Optional[str]:
        hit = self._bindings.get(capability_id)
        return hit[1].module_id if hit is not None else None

    def capabilities_of(self, module_id: str) -> List[str]:
        return list(self._by_module.get(module_id, ()))

    def all_capabilities(self) -> Dict[str, str]:
        return {cap_id: rec.module_id for cap_id, (_cap, rec) in sorted(self._bindings.items())}

    def __len__(self) -> int:
        return len(self._bindings)
