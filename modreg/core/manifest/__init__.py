"""
Module manifest contract and validation.
"""

from modreg.core.manifest.models import (
    CapabilityDescriptor,
    DependencyDeclaration,
    ModuleClass,
    ModuleManifest,
    ModuleRecord,
    ValidationIssue,
    ValidationResult,
)
from modreg.core.manifest.validator import (
    ManifestValidator,
    extract_module_class,
    is_valid_capability_id,
    is_valid_module_id,
    is_valid_semver,
)

__all__ = [
    "CapabilityDescriptor",
    "DependencyDeclaration",
    "ManifestValidator",
    "ModuleClass",
    "ModuleManifest",
    "ModuleRecord",
    "ValidationIssue",
    "ValidationResult",
    "extract_module_class",
    "is_valid_capability_id",
    "is_valid_module_id",
    "is_valid_semver",
]
