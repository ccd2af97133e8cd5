from __future__ import annotations

import pytest

from modreg.core.manifest.models import ModuleClass, ModuleManifest
from modreg.core.manifest.validator import (
    ManifestValidator,
    capability_namespace,
    extract_module_class,
    is_valid_capability_id,
    is_valid_module_id,
    is_valid_semver,
)

from .helpers.manifests import build_manifest, cap, dep, hello_manifest


def _codes(doc, **kw):
    return ManifestValidator(**kw).validate(doc).codes()


def test_hello_manifest_is_valid():
    res = ManifestValidator().validate(hello_manifest())
    assert res.valid is True
    assert res.errors == []


def test_typed_manifest_is_accepted():
    m = ModuleManifest.model_validate(hello_manifest())
    assert ManifestValidator().validate(m).valid is True


@pytest.mark.parametrize("candidate", ["core-hello", 42, None, ["core-hello"]])
def test_non_object_candidate(candidate):
    res = ManifestValidator().validate(candidate)
    assert res.valid is False
    assert res.codes() == ["NOT_AN_OBJECT"]


def test_missing_required_fields_reported_with_paths():
    res = ManifestValidator().validate({"capabilities": [], "dependencies": []})
    assert res.valid is False
    paths = {e.path for e in res.errors if e.code == "REQUIRED_FIELD_MISSING"}
    assert paths == {"/moduleId", "/class", "/version"}


def test_unknown_field_rejected():
    doc = build_manifest("core-hello", entrypoint="hello.py")
    res = ManifestValidator().validate(doc)
    assert res.codes() == ["UNKNOWN_FIELD"]
    assert res.errors[0].path == "/entrypoint"


def test_snake_case_spelling_is_not_an_alias():
    doc = build_manifest("core-hello")
    doc["module_id"] = doc.pop("moduleId")
    codes = _codes(doc)
    assert "UNKNOWN_FIELD" in codes
    assert "REQUIRED_FIELD_MISSING" in codes


def test_wrong_types_reported():
    doc = build_manifest("core-hello", version=100)
    doc["capabilities"] = "hello-greet"
    res = ManifestValidator().validate(doc)
    assert {e.path for e in res.errors} == {"/version", "/capabilities"}
    assert set(res.codes()) == {"INVALID_TYPE"}


def test_empty_capability_name_is_invalid_value():
    doc = build_manifest("core-hello", capabilities=[cap("hello-greet", name="")])
    doc["capabilities"][0]["name"] = ""
    res = ManifestValidator().validate(doc)
    assert res.codes() == ["INVALID_VALUE"]
    assert res.errors[0].path == "/capabilities/0/name"


def test_unknown_class():
    res = ManifestValidator().validate(build_manifest("core-hello", module_class="widget"))
    assert res.codes() == ["INVALID_MODULE_CLASS"]
    assert res.errors[0].path == "/class"


@pytest.mark.parametrize("module_id", ["hello", "Core-hello", "core-", "core-hello-", "core--hello", "plugin-hello", "core_hello"])
def test_malformed_module_id(module_id):
    codes = _codes(build_manifest(module_id, module_class="core"))
    assert codes == ["INVALID_MODULE_ID"]


def test_class_mismatch_is_distinct_from_malformed_id():
    res = ManifestValidator().validate(build_manifest("suite-hello", module_class="core"))
    assert res.codes() == ["MODULE_CLASS_MISMATCH"]
    issue = res.errors[0]
    assert issue.path == "/class"
    assert issue.context["extractedClass"] == "suite"
    assert issue.context["declaredClass"] == "core"


@pytest.mark.parametrize("version", ["1.0", "v1.0.0", "01.0.0", "1.0.0.0", "1.0.0-"])
def test_invalid_semver(version):
    assert _codes(build_manifest("core-hello", version=version)) == ["INVALID_VERSION"]


@pytest.mark.parametrize("version", ["0.0.1", "1.2.3", "1.0.0-beta.1", "2.0.0-rc.1+build.5", "1.0.0+20130313144700"])
def test_valid_semver(version):
    assert ManifestValidator().validate(build_manifest("core-hello", version=version)).valid is True


@pytest.mark.parametrize("cap_id", ["hello", "Hello-greet", "hello.greet", "hello-", "1hello-greet", "hello--greet"])
def test_malformed_capability_id(cap_id):
    res = ManifestValidator().validate(build_manifest("core-hello", capabilities=[cap_id]))
    assert res.codes() == ["INVALID_CAPABILITY_ID"]
    assert res.errors[0].path == "/capabilities/0/id"


def test_duplicate_capability_points_at_second_occurrence():
    res = ManifestValidator().validate(build_manifest("core-hello", capabilities=["hello-greet", "hello-wave", "hello-greet"]))
    assert res.codes() == ["DUPLICATE_CAPABILITY"]
    assert res.errors[0].path == "/capabilities/2/id"
    assert res.errors[0].context["firstIndex"] == 0


def test_capability_version_format():
    ok = build_manifest("core-hello", capabilities=[cap("hello-greet", version="1.2"), cap("hello-wave", version="2.0.1")])
    assert ManifestValidator().validate(ok).valid is True

    bad = build_manifest("core-hello", capabilities=[cap("hello-greet", version="1")])
    res = ManifestValidator().validate(bad)
    assert res.codes() == ["INVALID_CAPABILITY_VERSION"]
    assert res.errors[0].path == "/capabilities/0/version"


def test_self_dependency_only_reports_self():
    res = ManifestValidator().validate(build_manifest("core-hello", dependencies=["core-hello"]))
    assert res.codes() == ["SELF_DEPENDENCY"]
    assert res.errors[0].path == "/dependencies/0/moduleId"


def test_malformed_dependency_id():
    res = ManifestValidator().validate(build_manifest("core-hello", dependencies=["Hello"]))
    assert res.codes() == ["INVALID_DEPENDENCY_ID"]


def test_duplicate_dependency():
    res = ManifestValidator().validate(build_manifest("suite-crm", dependencies=["core-auth", dep("core-auth", optional=True)]))
    assert res.codes() == ["DUPLICATE_DEPENDENCY"]
    assert res.errors[0].path == "/dependencies/1/moduleId"


def test_dependency_required_capabilities_checked():
    doc = build_manifest("suite-crm", dependencies=[dep("core-auth", capabilities=["auth-login", "Login"])])
    res = ManifestValidator().validate(doc)
    assert res.codes() == ["INVALID_CAPABILITY_ID"]
    assert res.errors[0].path == "/dependencies/0/capabilities/1"


def test_dependency_version_constraint_is_recorded_not_resolved():
    doc = build_manifest("suite-crm", dependencies=[dep("core-auth", version="^1.2 || >=2")])
    assert ManifestValidator().validate(doc).valid is True


def test_all_problems_reported_together():
    doc = build_manifest(
        "core-hello",
        version="latest",
        capabilities=["hello-greet", "hello-greet", "BAD"],
        dependencies=["core-hello"],
        extra_key=True,
    )
    codes = _codes(doc)
    for code in ("UNKNOWN_FIELD", "INVALID_VERSION", "DUPLICATE_CAPABILITY", "INVALID_CAPABILITY_ID", "SELF_DEPENDENCY"):
        assert code in codes


def test_prefixed_module_ids():
    v = ManifestValidator(module_id_prefix="webwaka")
    assert v.id_shape() == "webwaka-<class>-<slug>"
    assert v.validate(build_manifest("webwaka-core-hello", module_class="core")).valid is True
    assert v.validate(build_manifest("core-hello")).codes() == ["INVALID_MODULE_ID"]

    mismatch = v.validate(build_manifest("webwaka-suite-crm", module_class="core"))
    assert mismatch.codes() == ["MODULE_CLASS_MISMATCH"]

    bad_dep = v.validate(build_manifest("webwaka-suite-crm", module_class="suite", dependencies=["core-auth"]))
    assert bad_dep.codes() == ["INVALID_DEPENDENCY_ID"]


def test_helpers():
    assert is_valid_module_id("ext-payments-stripe")
    assert is_valid_module_id("webwaka-infra-db", prefix="webwaka")
    assert not is_valid_module_id("infra-db", prefix="webwaka")
    assert not is_valid_module_id(None)
    assert extract_module_class("industry-retail") == ModuleClass.industry
    assert extract_module_class("retail") is None
    assert is_valid_capability_id("user-auth-login")
    assert not is_valid_capability_id("user")
    assert capability_namespace("user-auth-login") == "user"
    assert is_valid_semver("1.0.0")
    assert not is_valid_semver(1)


def test_parse_returns_typed_manifest():
    m = ManifestValidator().parse(hello_manifest())
    assert m.module_id == "core-hello"
    assert m.module_class == ModuleClass.core
    assert m.capability_ids == ["hello-greet"]
    assert m.to_document()["moduleId"] == "core-hello"


def test_metadata_must_be_json():
    ok = build_manifest("core-hello", metadata={"tags": ["a", "b"], "limits": {"rps": 10, "burst": None}})
    assert ManifestValidator().validate(ok).valid is True

    res = ManifestValidator().validate(build_manifest("core-hello", metadata={"handle": object()}))
    assert res.codes() == ["INVALID_METADATA"]
    assert [i.code for i in res.at("/metadata")] == ["INVALID_METADATA"]
    assert res.at("/moduleId") == []


def test_typed_manifest_with_non_json_metadata_reports_instead_of_raising():
    m = ModuleManifest.model_validate(build_manifest("core-hello", metadata={"handle": object()}))
    res = ManifestValidator().validate(m)
    assert res.valid is False
    assert res.codes() == ["INVALID_METADATA"]
