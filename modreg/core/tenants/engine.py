from __future__ import annotations

"""
Per-tenant module enablement.

WHY THIS FILE EXISTS:
Enable/disable is the only path that mutates tenant state, and both
directions are gated by the dependency declarations of registered modules:
a module is enabled only after its required dependencies, and disabled only
after every enabled module that requires it. Repeating a transition is a
caller error (ALREADY_ENABLED / ALREADY_DISABLED), not a silent no-op.
"""

import contextlib
import logging
import re
import time
from typing import TYPE_CHECKING, Any, Callable, ContextManager, List, Optional, Tuple

from modreg.core.errors import (
    AlreadyDisabledError,
    AlreadyEnabledError,
    DependencyNotEnabledError,
    DependentEnabledError,
    InvalidIdentifierError,
    TenantControlError,
    UnknownModuleError,
)
from modreg.core.events import EventPublisher, EventSeverity, SourceSubsystem
from modreg.core.manifest.models import ModuleRecord
from modreg.core.manifest.validator import ManifestValidator
from modreg.core.tenants.locks import TenantLocks
from modreg.core.tenants.models import TenantModuleState, TenantModuleStatus, TransitionCheck
from modreg.core.timestamps import Clock, iso_utc
from modreg.core.trace import resolve_trace_id

if TYPE_CHECKING:
    from modreg.core.storage.base import RegistryStorage

TENANT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:@-]{0,127}$")


def is_valid_tenant_id(tenant_id: Any) -> bool:
    return isinstance(tenant_id, str) and TENANT_ID_PATTERN.match(tenant_id) is not None


class TenantEnablementEngine:
    def __init__(
        self,
        *,
        storage: RegistryStorage,
        validator: Optional[ManifestValidator] = None,
        clock: Clock = time.time,
        logger: Optional[logging.Logger] = None,
        event_bus: Any = None,
        guard: Optional[Callable[[], ContextManager[Any]]] = None,
    ):
        """
        `guard` wraps every read-decide-write section; the registry passes its
        shared catalog lock so modules cannot be unregistered mid-transition.
        """
        self.storage = storage
        self.validator = validator or ManifestValidator()
        self.clock = clock
        self.logger = logger or logging.getLogger("modreg.tenants")
        self.events = EventPublisher(event_bus=event_bus, subsystem=SourceSubsystem.tenants, logger=self.logger)
        self._guard = guard or contextlib.nullcontext
        self._locks = TenantLocks()

    # ---- helpers ----
    def _check_ids(self, tenant_id: Any, module_id: Any = None, *, check_module: bool = True) -> None:
        if not is_valid_tenant_id(tenant_id):
            raise InvalidIdentifierError("tenant id", tenant_id)
        if check_module and not self.validator.is_valid_module_id(module_id):
            raise InvalidIdentifierError("module id", module_id)

    def _enabled(self, tenant_id: str, module_id: str) -> bool:
        st = self.storage.get_tenant_state(tenant_id, module_id)
        return st is not None and st.enabled

    def _missing_dependencies(self, tenant_id: str, record: ModuleRecord) -> List[str]:
        out: List[str] = []
        for dep_id in record.required_dependencies:
            if dep_id not in out and not self._enabled(tenant_id, dep_id):
                out.append(dep_id)
        return out

    def _enabled_dependents(self, tenant_id: str, module_id: str) -> List[str]:
        return sorted(
            m.module_id
            for m in self.storage.list_modules()
            if m.module_id != module_id and m.depends_on(module_id, required_only=True) and self._enabled(tenant_id, m.module_id)
        )

    def _enable_blockers(self, tenant_id: str, module_id: str) -> Tuple[str, List[str]]:
        record = self.storage.get_module(module_id)
        if record is None:
            return "MODULE_NOT_FOUND", []
        if self._enabled(tenant_id, module_id):
            return "ALREADY_ENABLED", []
        missing = self._missing_dependencies(tenant_id, record)
        if missing:
            return "DEPENDENCY_NOT_ENABLED", missing
        return "", []

    def _disable_blockers(self, tenant_id: str, module_id: str) -> Tuple[str, List[str]]:
        if self.storage.get_module(module_id) is None:
            return "MODULE_NOT_FOUND", []
        if not self._enabled(tenant_id, module_id):
            return "ALREADY_DISABLED", []
        dependents = self._enabled_dependents(tenant_id, module_id)
        if dependents:
            return "DEPENDENT_ENABLED", dependents
        return "", []

    @staticmethod
    def _error_for(code: str, tenant_id: str, module_id: str, related: List[str]) -> TenantControlError:
        if code == "MODULE_NOT_FOUND":
            return UnknownModuleError(module_id, tenant_id=tenant_id)
        if code == "ALREADY_ENABLED":
            return AlreadyEnabledError(tenant_id, module_id)
        if code == "ALREADY_DISABLED":
            return AlreadyDisabledError(tenant_id, module_id)
        if code == "DEPENDENCY_NOT_ENABLED":
            return DependencyNotEnabledError(tenant_id, module_id, related)
        return DependentEnabledError(tenant_id, module_id, related)

    def _deny(self, trace_id: str, action: str, err: TenantControlError) -> TenantControlError:
        self.logger.info("%s denied for tenant=%s module=%s: %s", action, err.tenant_id, err.module_id, err.code)
        self.events.emit(
            trace_id,
            f"tenant_module.{action}_denied",
            {"tenant_id": err.tenant_id, "module_id": err.module_id, "reason": err.code, "related_modules": err.related_modules},
            severity=EventSeverity.WARN,
        )
        return err

    # ---- transitions ----
    def enable(self, tenant_id: str, module_id: str, *, trace_id: Optional[str] = None) -> TenantModuleState:
        self._check_ids(tenant_id, module_id)
        trace_id = resolve_trace_id(trace_id)
        with self._guard(), self._locks.for_tenant(tenant_id):
            code, related = self._enable_blockers(tenant_id, module_id)
            if not code:
                current = self.storage.get_tenant_state(tenant_id, module_id)
                now = iso_utc(self.clock())
                state = TenantModuleState(
                    tenant_id=tenant_id,
                    module_id=module_id,
                    enabled=True,
                    enabled_at=now,
                    disabled_at=current.disabled_at if current is not None else None,
                    updated_at=now,
                )
                self.storage.save_tenant_state(state)
        # events go out with no lock held; handlers may call back in
        if code:
            raise self._deny(trace_id, "enable", self._error_for(code, tenant_id, module_id, related))
        self.logger.info("enabled module=%s tenant=%s", module_id, tenant_id)
        self.events.emit(trace_id, "tenant_module.enabled", {"tenant_id": tenant_id, "module_id": module_id, "enabled": True})
        return state

    def disable(self, tenant_id: str, module_id: str, *, trace_id: Optional[str] = None) -> TenantModuleState:
        self._check_ids(tenant_id, module_id)
        trace_id = resolve_trace_id(trace_id)
        with self._guard(), self._locks.for_tenant(tenant_id):
            code, related = self._disable_blockers(tenant_id, module_id)
            if not code:
                current = self.storage.get_tenant_state(tenant_id, module_id)
                now = iso_utc(self.clock())
                state = TenantModuleState(
                    tenant_id=tenant_id,
                    module_id=module_id,
                    enabled=False,
                    enabled_at=current.enabled_at if current is not None else None,
                    disabled_at=now,
                    updated_at=now,
                )
                self.storage.save_tenant_state(state)
        if code:
            raise self._deny(trace_id, "disable", self._error_for(code, tenant_id, module_id, related))
        self.logger.info("disabled module=%s tenant=%s", module_id, tenant_id)
        self.events.emit(trace_id, "tenant_module.disabled", {"tenant_id": tenant_id, "module_id": module_id, "enabled": False})
        return state

    # ---- previews ----
    def can_enable(self, tenant_id: str, module_id: str) -> TransitionCheck:
        self._check_ids(tenant_id, module_id)
        with self._guard():
            code, related = self._enable_blockers(tenant_id, module_id)
        return TransitionCheck(allowed=not code, reason_code=code, blocking_modules=related)

    def can_disable(self, tenant_id: str, module_id: str) -> TransitionCheck:
        self._check_ids(tenant_id, module_id)
        with self._guard():
            code, related = self._disable_blockers(tenant_id, module_id)
        return TransitionCheck(allowed=not code, reason_code=code, blocking_modules=related)

    # ---- reads ----
    def is_enabled(self, tenant_id: str, module_id: str) -> bool:
        self._check_ids(tenant_id, module_id)
        return self._enabled(tenant_id, module_id)

    def get_record(self, tenant_id: str, module_id: str) -> Optional[TenantModuleState]:
        self._check_ids(tenant_id, module_id)
        return self.storage.get_tenant_state(tenant_id, module_id)

    def get_state(self, tenant_id: str, module_id: str) -> TenantModuleStatus:
        st = self.get_record(tenant_id, module_id)
        return TenantModuleStatus.absent if st is None else st.status

    def list_states(self, tenant_id: str) -> List[TenantModuleState]:
        self._check_ids(tenant_id, check_module=False)
        return sorted(self.storage.list_tenant_states(tenant_id), key=lambda s: s.module_id)

    def get_enabled_modules(self, tenant_id: str) -> List[str]:
        return [s.module_id for s in self.list_states(tenant_id) if s.enabled]

    def enabled_tenants(self, module_id: str) -> List[str]:
        return sorted({s.tenant_id for s in self.storage.list_tenant_states() if s.module_id == module_id and s.enabled})

    def reset(self) -> None:
        self._locks.clear()
