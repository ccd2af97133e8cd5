"""
modreg: module/capability registry with per-tenant enablement.
"""

from modreg.core.config import RegistryConfig, load_config
from modreg.core.errors import RegistryError
from modreg.core.logger import setup_logging
from modreg.core.manifest import ModuleManifest, ModuleRecord, ValidationResult
from modreg.core.registry import ModuleRegistry, build_registry
from modreg.core.storage import InMemoryStorage, JsonFileStorage, RegistryStorage
from modreg.core.tenants import TenantModuleState, TenantModuleStatus, TransitionCheck
from modreg.core.trace import trace_scope

__version__ = "0.1.0"

__all__ = [
    "InMemoryStorage",
    "JsonFileStorage",
    "ModuleManifest",
    "ModuleRecord",
    "ModuleRegistry",
    "RegistryConfig",
    "RegistryError",
    "RegistryStorage",
    "TenantModuleState",
    "TenantModuleStatus",
    "TransitionCheck",
    "ValidationResult",
    "build_registry",
    "load_config",
    "setup_logging",
    "trace_scope",
]
