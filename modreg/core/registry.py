from __future__ import annotations

"""
ModuleRegistry: the single in-process API over modules, capabilities and tenants.

WHY THIS FILE EXISTS:
Registration touches three things that must agree: the module store, the
capability index and the dependency graph. This facade owns all of them and
applies a registration fully or not at all:
- every check runs before anything is written
- the capability index is bound first and rolled back if the store write fails
- tenant operations never run while the catalog is being changed

There is no module-level instance. Hosts (and tests) build as many isolated
registries as they need.
"""

import logging
import time
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from modreg.core.capabilities.index import CapabilityIndex
from modreg.core.capabilities.models import CapabilityResolution
from modreg.core.config.models import RegistryConfig, StorageBackend
from modreg.core.dependencies.graph import DependencyGraphChecker
from modreg.core.errors import (
    AlreadyRegisteredError,
    CapabilityConflictError,
    ManifestValidationError,
    ModuleInUseError,
    ModuleNotRegisteredError,
    RegistryError,
)
from modreg.core.events import EventPublisher, EventSeverity, SourceSubsystem
from modreg.core.logger import get_logger, setup_logging
from modreg.core.manifest.models import ModuleManifest, ModuleRecord, ValidationResult
from modreg.core.manifest.validator import ManifestValidator
from modreg.core.storage.base import RegistryStorage
from modreg.core.storage.json_file import JsonFileStorage
from modreg.core.storage.memory import InMemoryStorage
from modreg.core.tenants.engine import TenantEnablementEngine
from modreg.core.tenants.locks import CatalogLock
from modreg.core.tenants.models import TenantModuleState, TenantModuleStatus, TransitionCheck
from modreg.core.timestamps import Clock, iso_utc
from modreg.core.trace import resolve_trace_id


class ModuleRegistry:
    def __init__(
        self,
        *,
        config: Optional[RegistryConfig] = None,
        storage: Optional[RegistryStorage] = None,
        clock: Clock = time.time,
        logger: Optional[logging.Logger] = None,
        event_bus: Any = None,
    ):
        self.config = config or RegistryConfig()
        self.storage = storage if storage is not None else InMemoryStorage()
        self.clock = clock
        self.logger = logger or get_logger("registry")
        self.validator = ManifestValidator(module_id_prefix=self.config.module_id_prefix)
        self.capabilities = CapabilityIndex(logger=self.logger.getChild("capabilities"))
        self._catalog = CatalogLock()
        self.graph = DependencyGraphChecker(max_depth=self.config.max_dependency_depth, logger=self.logger.getChild("dependencies"))
        self.tenants = TenantEnablementEngine(
            storage=self.storage,
            validator=self.validator,
            clock=clock,
            logger=self.logger.getChild("tenants"),
            event_bus=event_bus,
            guard=self._catalog.shared,
        )
        self.events = EventPublisher(event_bus=event_bus, subsystem=SourceSubsystem.registry, logger=self.logger)
        # a persistent store may already hold modules
        self.capabilities.rebuild(self.storage.list_modules())

    # ---- registration ----
    def validate(self, manifest: Any) -> ValidationResult:
        return self.validator.validate(manifest)

    def register(self, manifest: Any, *, trace_id: Optional[str] = None) -> ModuleRecord:
        trace_id = resolve_trace_id(trace_id)
        result = self.validator.validate(manifest)
        if not result.valid:
            module_id = manifest.get("moduleId") if isinstance(manifest, Mapping) else getattr(manifest, "module_id", None)
            module_id = module_id if isinstance(module_id, str) else None
            raise self._deny(trace_id, module_id, ManifestValidationError(result.errors, module_id=module_id))

        parsed = self.validator.parse(manifest)
        denied: Optional[RegistryError] = None
        with self._catalog.exclusive():
            try:
                record = self._commit(parsed)
            except RegistryError as e:
                denied = e
        # the bus may call back into the registry, so nothing is emitted under the lock
        if denied is not None:
            raise self._deny(trace_id, parsed.module_id, denied)

        self.logger.info(
            "registered module=%s version=%s capabilities=%d",
            record.module_id,
            record.version,
            len(record.capabilities),
        )
        self.events.emit(
            trace_id,
            "module.registered",
            {
                "module_id": record.module_id,
                "class": record.module_class.value,
                "version": record.version,
                "capabilities": record.capability_ids,
                "registered_at": record.registered_at,
            },
        )
        return record

    def _commit(self, manifest: ModuleManifest) -> ModuleRecord:
        if self.storage.get_module(manifest.module_id) is not None:
            raise AlreadyRegisteredError(manifest.module_id)
        conflicts = self.capabilities.find_conflicts(manifest)
        if conflicts:
            raise CapabilityConflictError(manifest.module_id, conflicts)
        self.graph.check(manifest, self.storage.get_module)

        record = ModuleRecord.from_manifest(manifest, registered_at=iso_utc(self.clock()))
        self.capabilities.register_capabilities(record)
        try:
            self.storage.save_module(record)
        except Exception:
            self.capabilities.unregister(record.module_id)
            raise
        return record

    def _deny(self, trace_id: str, module_id: Optional[str], err: RegistryError) -> RegistryError:
        self.logger.info("registration denied module=%s: %s", module_id, err.code)
        self.events.emit(
            trace_id,
            "module.registration_denied",
            {"module_id": module_id, "reason": err.code, "context": dict(err.context)},
            severity=EventSeverity.WARN,
        )
        return err

    def unregister(self, module_id: str, *, trace_id: Optional[str] = None) -> bool:
        """
        Remove a module and every capability it owns. Refused while any tenant
        still has it enabled. Returns False for an unknown module.
        """
        trace_id = resolve_trace_id(trace_id)
        with self._catalog.exclusive():
            record = self.storage.get_module(module_id)
            if record is None:
                return False
            tenants = self.tenants.enabled_tenants(module_id)
            if tenants:
                raise ModuleInUseError(module_id, tenants)
            self.capabilities.unregister(module_id)
            try:
                self.storage.delete_module(module_id)
            except Exception:
                self.capabilities.register_capabilities(record)
                raise
        self.logger.info("unregistered module=%s", module_id)
        self.events.emit(trace_id, "module.unregistered", {"module_id": module_id, "capabilities": record.capability_ids})
        return True

    # ---- catalog reads ----
    def list_modules(self) -> List[ModuleRecord]:
        return sorted(self.storage.list_modules(), key=lambda r: r.module_id)

    def get_module(self, module_id: str) -> Optional[ModuleRecord]:
        return self.storage.get_module(module_id)

    def resolve_capability(self, capability_id: str) -> CapabilityResolution:
        return self.capabilities.resolve(capability_id)

    def has_capability(self, capability_id: str) -> bool:
        return self.capabilities.has_capability(capability_id)

    def get_all_capabilities(self) -> Dict[str, str]:
        return self.capabilities.all_capabilities()

    def get_module_capabilities(self, module_id: str) -> List[str]:
        if self.storage.get_module(module_id) is None:
            raise ModuleNotRegisteredError(module_id)
        return self.capabilities.capabilities_of(module_id)

    # ---- dependency queries ----
    def get_dependency_order(self, module_id: str) -> List[str]:
        with self._catalog.shared():
            return self.graph.dependency_order(module_id, self.storage.get_module)

    def get_dependents(self, module_id: str, *, required_only: bool = False) -> List[str]:
        return self.graph.dependents(module_id, self.storage.list_modules(), required_only=required_only)

    def get_dependency_graph(self, module_id: str) -> List[Dict[str, Any]]:
        if self.storage.get_module(module_id) is None:
            raise ModuleNotRegisteredError(module_id)
        with self._catalog.shared():
            return self.graph.dependency_graph(module_id, self.storage.get_module)

    # ---- tenant control ----
    def enable(self, tenant_id: str, module_id: str, *, trace_id: Optional[str] = None) -> TenantModuleState:
        return self.tenants.enable(tenant_id, module_id, trace_id=trace_id)

    def disable(self, tenant_id: str, module_id: str, *, trace_id: Optional[str] = None) -> TenantModuleState:
        return self.tenants.disable(tenant_id, module_id, trace_id=trace_id)

    def can_enable(self, tenant_id: str, module_id: str) -> TransitionCheck:
        return self.tenants.can_enable(tenant_id, module_id)

    def can_disable(self, tenant_id: str, module_id: str) -> TransitionCheck:
        return self.tenants.can_disable(tenant_id, module_id)

    def is_enabled(self, tenant_id: str, module_id: str) -> bool:
        return self.tenants.is_enabled(tenant_id, module_id)

    def get_state(self, tenant_id: str, module_id: str) -> TenantModuleStatus:
        return self.tenants.get_state(tenant_id, module_id)

    def get_enabled_modules(self, tenant_id: str) -> List[str]:
        return self.tenants.get_enabled_modules(tenant_id)

    def reset(self) -> None:
        """Drop every module, binding and tenant record."""
        with self._catalog.exclusive():
            self.storage.clear()
            self.capabilities.clear()
            self.tenants.reset()
        self.logger.info("registry reset")


def build_storage(config: RegistryConfig) -> RegistryStorage:
    if config.storage_backend == StorageBackend.json:
        return JsonFileStorage(config.storage_dir)
    return InMemoryStorage()


def build_registry(
    config: Optional[RegistryConfig] = None,
    *,
    clock: Clock = time.time,
    logger: Optional[logging.Logger] = None,
    event_bus: Any = None,
) -> ModuleRegistry:
    """
    Wire a registry from config: storage backend, id prefix, depth limit and,
    unless `log_dir` is empty, the rotating log file.
    """
    config = config or RegistryConfig()
    if config.log_dir:
        setup_logging(config.log_dir)
    return ModuleRegistry(config=config, storage=build_storage(config), clock=clock, logger=logger, event_bus=event_bus)
