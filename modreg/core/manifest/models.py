from __future__ import annotations

"""
Module manifest contract (the exchanged document) and the committed record.

The manifest is camelCase on the wire (`moduleId`, `class`, `registeredAt`);
Python code reads the snake_case attributes. The schema is closed: unknown
keys are rejected, including snake_case spellings of aliased fields.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, StringConstraints

NonEmptyStr = Annotated[str, StringConstraints(strict=True, min_length=1)]


class ModuleClass(str, Enum):
    core = "core"
    suite = "suite"
    industry = "industry"
    ext = "ext"
    infra = "infra"


class CapabilityDescriptor(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: NonEmptyStr
    name: NonEmptyStr
    description: StrictStr = ""
    version: Optional[NonEmptyStr] = None  # API version, major.minor


class DependencyDeclaration(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    module_id: NonEmptyStr = Field(alias="moduleId")
    version: Optional[NonEmptyStr] = None  # recorded only; ranges are never resolved
    optional: StrictBool = False
    capabilities: List[NonEmptyStr] = Field(default_factory=list)


class ModuleManifest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    module_id: NonEmptyStr = Field(alias="moduleId")
    module_class: ModuleClass = Field(alias="class")
    version: NonEmptyStr
    name: Optional[StrictStr] = None
    description: Optional[StrictStr] = None
    capabilities: List[CapabilityDescriptor] = Field(default_factory=list)
    dependencies: List[DependencyDeclaration] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def capability_ids(self) -> List[str]:
        return [c.id for c in self.capabilities]

    @property
    def required_dependencies(self) -> List[str]:
        """Targets of non-optional dependency declarations, in declaration order."""
        return [d.module_id for d in self.dependencies if not d.optional]

    def depends_on(self, module_id: str, *, required_only: bool = True) -> bool:
        for d in self.dependencies:
            if d.module_id == module_id and not (required_only and d.optional):
                return True
        return False

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ModuleRecord(ModuleManifest):
    """
    A manifest committed to the module store. Never mutated after creation.
    """

    registered_at: NonEmptyStr = Field(alias="registeredAt")

    @classmethod
    def from_manifest(cls, manifest: ModuleManifest, *, registered_at: str) -> "ModuleRecord":
        return cls.model_validate({**manifest.model_dump(by_alias=True), "registeredAt": registered_at})


class ValidationIssue(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    code: str
    message: str
    path: str = ""
    context: Dict[str, Any] = Field(default_factory=dict)


class ValidationResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)

    def codes(self) -> List[str]:
        return [e.code for e in self.errors]

    def at(self, path: str) -> List[ValidationIssue]:
        return [e for e in self.errors if e.path == path]
