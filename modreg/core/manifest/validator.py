from __future__ import annotations

"""
Manifest validation.

`ManifestValidator.validate` never raises. Schema problems (types, required
and unknown fields) come from the pydantic contract; format and business
rules are checked over the raw document so both kinds are reported together.
"""

import json
import re
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from modreg.core.manifest.models import ModuleClass, ModuleManifest, ValidationIssue, ValidationResult

MODULE_CLASSES = tuple(c.value for c in ModuleClass)
CAPABILITY_SEPARATOR = "-"

SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)
CAPABILITY_ID_PATTERN = re.compile(r"^[a-z][a-z0-9]*(?:-[a-z0-9]+)+$")
CAPABILITY_VERSION_PATTERN = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)(?:\.(0|[1-9]\d*))?$")

_SLUG = r"[a-z0-9](?:[a-z0-9-]*[a-z0-9])?"

# pydantic error type -> issue code
_SCHEMA_CODES = {
    "missing": "REQUIRED_FIELD_MISSING",
    "extra_forbidden": "UNKNOWN_FIELD",
    "enum": "INVALID_MODULE_CLASS",
    "string_too_short": "INVALID_VALUE",
    "too_short": "INVALID_VALUE",
}


def module_id_pattern(prefix: str = "") -> "re.Pattern[str]":
    lead = re.escape(prefix) + "-" if prefix else ""
    return re.compile(rf"^{lead}({'|'.join(MODULE_CLASSES)})-({_SLUG})$")


def is_valid_module_id(module_id: Any, prefix: str = "") -> bool:
    return isinstance(module_id, str) and module_id_pattern(prefix).match(module_id) is not None


def extract_module_class(module_id: Any, prefix: str = "") -> Optional[ModuleClass]:
    if not isinstance(module_id, str):
        return None
    m = module_id_pattern(prefix).match(module_id)
    return ModuleClass(m.group(1)) if m else None


def is_valid_capability_id(capability_id: Any) -> bool:
    return isinstance(capability_id, str) and CAPABILITY_ID_PATTERN.match(capability_id) is not None


def capability_namespace(capability_id: str) -> str:
    return capability_id.split(CAPABILITY_SEPARATOR, 1)[0]


def is_valid_semver(version: Any) -> bool:
    return isinstance(version, str) and SEMVER_PATTERN.match(version) is not None


def is_json_safe(value: Any) -> bool:
    try:
        json.dumps(value, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError):
        return False
    return True


def _pointer(loc: Any) -> str:
    return "/" + "/".join(str(p) for p in loc) if loc else ""


def _issue(code: str, message: str, path: str, **context: Any) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, path=path, context=context)


class ManifestValidator:
    def __init__(self, *, module_id_prefix: str = ""):
        self.module_id_prefix = str(module_id_prefix or "")
        self._module_id_re = module_id_pattern(self.module_id_prefix)

    def id_shape(self) -> str:
        lead = f"{self.module_id_prefix}-" if self.module_id_prefix else ""
        return f"{lead}<class>-<slug>"

    def is_valid_module_id(self, module_id: Any) -> bool:
        return isinstance(module_id, str) and self._module_id_re.match(module_id) is not None

    def validate(self, candidate: Any) -> ValidationResult:
        if isinstance(candidate, ModuleManifest):
            try:
                raw: Dict[str, Any] = candidate.to_document()
            except (PydanticSerializationError, TypeError, ValueError):
                # unserializable metadata; the metadata rule reports it
                raw = candidate.model_dump(mode="python", by_alias=True, exclude_none=True)
                raw["class"] = candidate.module_class.value
        elif isinstance(candidate, Mapping):
            raw = dict(candidate)
        else:
            return ValidationResult(
                valid=False,
                errors=[_issue("NOT_AN_OBJECT", "Manifest must be an object.", "", received=type(candidate).__name__)],
            )

        issues = self._schema_issues(raw)
        issues.extend(self._module_rules(raw))
        issues.extend(self._capability_rules(raw))
        issues.extend(self._dependency_rules(raw))
        issues.extend(self._metadata_rules(raw))
        return ValidationResult(valid=not issues, errors=issues)

    def parse(self, candidate: Any) -> ModuleManifest:
        """
        Typed manifest for a candidate that already passed `validate`.
        """
        if isinstance(candidate, ModuleManifest):
            return candidate
        return ModuleManifest.model_validate(dict(candidate))

    # ---- schema ----
    def _schema_issues(self, raw: Dict[str, Any]) -> List[ValidationIssue]:
        try:
            ModuleManifest.model_validate(raw)
            return []
        except ValidationError as e:
            out: List[ValidationIssue] = []
            for err in e.errors():
                etype = str(err.get("type") or "")
                path = _pointer(err.get("loc") or ())
                code = _SCHEMA_CODES.get(etype, "INVALID_TYPE")
                if code == "UNKNOWN_FIELD":
                    msg = f"Unknown field '{path.rsplit('/', 1)[-1]}'."
                elif code == "REQUIRED_FIELD_MISSING":
                    msg = f"Required field '{path.rsplit('/', 1)[-1]}' is missing."
                elif code == "INVALID_MODULE_CLASS":
                    msg = f"class must be one of: {', '.join(MODULE_CLASSES)}."
                else:
                    msg = str(err.get("msg") or "Invalid value.")
                out.append(_issue(code, msg, path, pydantic_type=etype))
            return out

    # ---- business rules ----
    def _module_rules(self, raw: Dict[str, Any]) -> List[ValidationIssue]:
        out: List[ValidationIssue] = []
        module_id = raw.get("moduleId")
        declared = raw.get("class")
        if isinstance(module_id, str) and module_id:
            m = self._module_id_re.match(module_id)
            if m is None:
                out.append(
                    _issue(
                        "INVALID_MODULE_ID",
                        f"moduleId '{module_id}' must match {self.id_shape()} with class one of {', '.join(MODULE_CLASSES)}.",
                        "/moduleId",
                        moduleId=module_id,
                    )
                )
            elif isinstance(declared, str) and declared in MODULE_CLASSES and m.group(1) != declared:
                out.append(
                    _issue(
                        "MODULE_CLASS_MISMATCH",
                        f"moduleId class segment '{m.group(1)}' does not match declared class '{declared}'.",
                        "/class",
                        moduleId=module_id,
                        declaredClass=declared,
                        extractedClass=m.group(1),
                    )
                )

        version = raw.get("version")
        if isinstance(version, str) and version and not is_valid_semver(version):
            out.append(
                _issue(
                    "INVALID_VERSION",
                    f"version '{version}' is not a semantic version (major.minor.patch).",
                    "/version",
                    version=version,
                )
            )
        return out

    def _capability_rules(self, raw: Dict[str, Any]) -> List[ValidationIssue]:
        out: List[ValidationIssue] = []
        caps = raw.get("capabilities")
        if not isinstance(caps, list):
            return out
        seen: Dict[str, int] = {}
        for i, cap in enumerate(caps):
            if not isinstance(cap, Mapping):
                continue
            cap_id = cap.get("id")
            if isinstance(cap_id, str) and cap_id:
                if not is_valid_capability_id(cap_id):
                    out.append(
                        _issue(
                            "INVALID_CAPABILITY_ID",
                            f"Capability id '{cap_id}' must be lowercase segments joined by '{CAPABILITY_SEPARATOR}'.",
                            f"/capabilities/{i}/id",
                            capabilityId=cap_id,
                        )
                    )
                if cap_id in seen:
                    out.append(
                        _issue(
                            "DUPLICATE_CAPABILITY",
                            f"Duplicate capability id '{cap_id}' within module.",
                            f"/capabilities/{i}/id",
                            capabilityId=cap_id,
                            firstIndex=seen[cap_id],
                        )
                    )
                else:
                    seen[cap_id] = i
            cap_version = cap.get("version")
            if isinstance(cap_version, str) and cap_version and not CAPABILITY_VERSION_PATTERN.match(cap_version):
                out.append(
                    _issue(
                        "INVALID_CAPABILITY_VERSION",
                        f"Capability version '{cap_version}' must be major.minor.",
                        f"/capabilities/{i}/version",
                        version=cap_version,
                    )
                )
        return out

    def _dependency_rules(self, raw: Dict[str, Any]) -> List[ValidationIssue]:
        out: List[ValidationIssue] = []
        deps = raw.get("dependencies")
        if not isinstance(deps, list):
            return out
        own_id = raw.get("moduleId")
        seen: Dict[str, int] = {}
        for i, dep in enumerate(deps):
            if not isinstance(dep, Mapping):
                continue
            target = dep.get("moduleId")
            if isinstance(target, str) and target:
                if target == own_id:
                    out.append(_issue("SELF_DEPENDENCY", "Module cannot depend on itself.", f"/dependencies/{i}/moduleId", moduleId=target))
                elif not self.is_valid_module_id(target):
                    out.append(
                        _issue(
                            "INVALID_DEPENDENCY_ID",
                            f"Dependency '{target}' must match {self.id_shape()}.",
                            f"/dependencies/{i}/moduleId",
                            dependencyId=target,
                        )
                    )
                if target in seen:
                    out.append(
                        _issue(
                            "DUPLICATE_DEPENDENCY",
                            f"Duplicate dependency '{target}'.",
                            f"/dependencies/{i}/moduleId",
                            dependencyId=target,
                            firstIndex=seen[target],
                        )
                    )
                else:
                    seen[target] = i
            required_caps = dep.get("capabilities")
            if isinstance(required_caps, list):
                for j, cap_id in enumerate(required_caps):
                    if isinstance(cap_id, str) and cap_id and not is_valid_capability_id(cap_id):
                        out.append(
                            _issue(
                                "INVALID_CAPABILITY_ID",
                                f"Required capability id '{cap_id}' is malformed.",
                                f"/dependencies/{i}/capabilities/{j}",
                                capabilityId=cap_id,
                            )
                        )
        return out

    def _metadata_rules(self, raw: Dict[str, Any]) -> List[ValidationIssue]:
        metadata = raw.get("metadata")
        if isinstance(metadata, Mapping) and not is_json_safe(dict(metadata)):
            return [_issue("INVALID_METADATA", "metadata must contain only JSON values.", "/metadata")]
        return []
