from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class RegistryError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return f"{self.code}: {self.user_message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": dict(self.context or {}),
        }


# ---- Config ----
class ConfigError(RegistryError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class StorageError(RegistryError):
    def __init__(self, user_message: str = "Registry storage error.", **ctx: Any):
        super().__init__("storage_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class InvalidIdentifierError(RegistryError):
    def __init__(self, kind: str, value: Any):
        super().__init__(
            "INVALID_IDENTIFIER",
            f"Malformed {kind}: {value!r}",
            severity=Severity.WARN,
            context={"kind": kind, "value": str(value)},
        )
        self.kind = kind
        self.value = value


# ---- Registration ----
class ManifestValidationError(RegistryError):
    def __init__(self, issues: Sequence[Any], *, module_id: Optional[str] = None):
        issues = list(issues)
        summary = "; ".join(str(getattr(i, "message", i)) for i in issues[:5])
        super().__init__(
            "VALIDATION_FAILED",
            f"Manifest validation failed: {summary}" if summary else "Manifest validation failed.",
            severity=Severity.WARN,
            context={"module_id": module_id, "codes": [getattr(i, "code", "") for i in issues]},
        )
        self.issues = issues
        self.module_id = module_id


class AlreadyRegisteredError(RegistryError):
    def __init__(self, module_id: str):
        super().__init__(
            "ALREADY_REGISTERED",
            f"Module '{module_id}' is already registered.",
            severity=Severity.WARN,
            context={"module_id": module_id},
        )
        self.module_id = module_id


class CapabilityConflictError(RegistryError):
    def __init__(self, module_id: str, conflicts: Dict[str, str]):
        listed = ", ".join(f"{cap} (owned by {owner})" for cap, owner in sorted(conflicts.items()))
        super().__init__(
            "CAPABILITY_CONFLICT",
            f"Capability conflict for '{module_id}': {listed}",
            severity=Severity.WARN,
            context={"module_id": module_id, "conflicts": dict(conflicts)},
        )
        self.module_id = module_id
        self.conflicts = dict(conflicts)


class CircularDependencyError(RegistryError):
    def __init__(self, path: Sequence[str]):
        path = list(path)
        super().__init__(
            "CIRCULAR_DEPENDENCY",
            "Circular dependency detected: " + " -> ".join(path),
            severity=Severity.WARN,
            context={"path": path},
        )
        self.path = path


class DependencyDepthError(RegistryError):
    def __init__(self, module_id: str, max_depth: int):
        super().__init__(
            "DEPENDENCY_DEPTH_EXCEEDED",
            f"Dependency chain of '{module_id}' is deeper than {max_depth}.",
            severity=Severity.WARN,
            context={"module_id": module_id, "max_depth": int(max_depth)},
        )
        self.module_id = module_id
        self.max_depth = int(max_depth)


class ModuleNotRegisteredError(RegistryError):
    def __init__(self, module_id: str):
        super().__init__(
            "MODULE_NOT_FOUND",
            f"Module '{module_id}' is not registered.",
            severity=Severity.WARN,
            context={"module_id": module_id},
        )
        self.module_id = module_id


class ModuleInUseError(RegistryError):
    def __init__(self, module_id: str, tenants: Sequence[str]):
        tenants = sorted(tenants)
        super().__init__(
            "MODULE_IN_USE",
            f"Module '{module_id}' is still enabled for: {', '.join(tenants)}",
            severity=Severity.WARN,
            context={"module_id": module_id, "tenants": tenants},
        )
        self.module_id = module_id
        self.tenants = tenants


# ---- Capability resolution ----
class CapabilityNotFoundError(RegistryError):
    def __init__(self, capability_id: str):
        super().__init__(
            "NOT_FOUND",
            f"Capability '{capability_id}' is not registered.",
            severity=Severity.WARN,
            context={"capability_id": capability_id},
        )
        self.capability_id = capability_id


class InvalidCapabilityIdError(RegistryError):
    def __init__(self, capability_id: Any):
        super().__init__(
            "INVALID_FORMAT",
            f"Invalid capability id format: {capability_id!r}",
            severity=Severity.WARN,
            context={"capability_id": str(capability_id)},
        )
        self.capability_id = capability_id


# ---- Tenant control ----
class TenantControlError(RegistryError):
    def __init__(self, code: str, user_message: str, *, tenant_id: str, module_id: str, related: Sequence[str] = ()):
        related = sorted(related)
        super().__init__(
            code,
            user_message,
            severity=Severity.WARN,
            context={"tenant_id": tenant_id, "module_id": module_id, "related_modules": related},
        )
        self.tenant_id = tenant_id
        self.module_id = module_id
        self.related_modules: List[str] = related


class UnknownModuleError(TenantControlError):
    def __init__(self, module_id: str, *, tenant_id: str = ""):
        super().__init__(
            "MODULE_NOT_FOUND",
            f"Module '{module_id}' is not registered.",
            tenant_id=tenant_id,
            module_id=module_id,
        )


class AlreadyEnabledError(TenantControlError):
    def __init__(self, tenant_id: str, module_id: str):
        super().__init__(
            "ALREADY_ENABLED",
            f"Module '{module_id}' is already enabled for tenant '{tenant_id}'.",
            tenant_id=tenant_id,
            module_id=module_id,
        )


class AlreadyDisabledError(TenantControlError):
    def __init__(self, tenant_id: str, module_id: str):
        super().__init__(
            "ALREADY_DISABLED",
            f"Module '{module_id}' is not enabled for tenant '{tenant_id}'.",
            tenant_id=tenant_id,
            module_id=module_id,
        )


class DependencyNotEnabledError(TenantControlError):
    def __init__(self, tenant_id: str, module_id: str, missing: Sequence[str]):
        super().__init__(
            "DEPENDENCY_NOT_ENABLED",
            f"Cannot enable '{module_id}': required dependencies not enabled: {', '.join(sorted(missing))}",
            tenant_id=tenant_id,
            module_id=module_id,
            related=missing,
        )

    @property
    def missing(self) -> List[str]:
        return list(self.related_modules)


class DependentEnabledError(TenantControlError):
    def __init__(self, tenant_id: str, module_id: str, dependents: Sequence[str]):
        super().__init__(
            "DEPENDENT_ENABLED",
            f"Cannot disable '{module_id}': enabled modules depend on it: {', '.join(sorted(dependents))}",
            tenant_id=tenant_id,
            module_id=module_id,
            related=dependents,
        )

    @property
    def dependents(self) -> List[str]:
        return list(self.related_modules)
