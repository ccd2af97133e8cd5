from __future__ import annotations

import pytest

from modreg.core.errors import (
    AlreadyDisabledError,
    AlreadyEnabledError,
    DependencyNotEnabledError,
    DependentEnabledError,
    InvalidIdentifierError,
    UnknownModuleError,
)
from modreg.core.manifest.models import ModuleManifest, ModuleRecord
from modreg.core.storage.memory import InMemoryStorage
from modreg.core.tenants.engine import TenantEnablementEngine, is_valid_tenant_id
from modreg.core.tenants.models import TenantModuleStatus

from .helpers.fakes import FakeClock, RecordingBus
from .helpers.manifests import build_manifest, dep


def _engine(*manifests, bus=None, clock=None):
    storage = InMemoryStorage()
    for doc in manifests:
        m = ModuleManifest.model_validate(doc)
        storage.save_module(ModuleRecord.from_manifest(m, registered_at="2024-01-01T00:00:00Z"))
    return TenantEnablementEngine(storage=storage, clock=clock or FakeClock(), event_bus=bus)


def _ab(**kw):
    # suite-b requires core-a
    return _engine(build_manifest("core-a"), build_manifest("suite-b", dependencies=["core-a"]), **kw)


def test_enable_requires_dependencies_first():
    eng = _ab()
    with pytest.raises(DependencyNotEnabledError) as ei:
        eng.enable("t1", "suite-b")
    assert ei.value.code == "DEPENDENCY_NOT_ENABLED"
    assert ei.value.missing == ["core-a"]
    assert eng.get_state("t1", "suite-b") == TenantModuleStatus.absent

    eng.enable("t1", "core-a")
    st = eng.enable("t1", "suite-b")
    assert st.enabled is True
    assert eng.get_enabled_modules("t1") == ["core-a", "suite-b"]


def test_missing_lists_exact_set():
    eng = _engine(
        build_manifest("core-a"),
        build_manifest("core-b"),
        build_manifest("core-c"),
        build_manifest("suite-x", dependencies=["core-c", "core-a", "core-b", dep("ext-opt", optional=True)]),
    )
    eng.enable("t1", "core-b")
    with pytest.raises(DependencyNotEnabledError) as ei:
        eng.enable("t1", "suite-x")
    assert ei.value.missing == ["core-a", "core-c"]


def test_optional_dependency_not_required():
    eng = _engine(build_manifest("core-a"), build_manifest("suite-b", dependencies=[dep("core-a", optional=True)]))
    eng.enable("t1", "suite-b")
    assert eng.is_enabled("t1", "suite-b") is True
    # and it does not block disabling the optional target
    eng.enable("t1", "core-a")
    eng.disable("t1", "core-a")


def test_disable_blocked_by_enabled_dependent():
    eng = _ab()
    eng.enable("t1", "core-a")
    eng.enable("t1", "suite-b")
    with pytest.raises(DependentEnabledError) as ei:
        eng.disable("t1", "core-a")
    assert ei.value.code == "DEPENDENT_ENABLED"
    assert ei.value.dependents == ["suite-b"]
    assert eng.is_enabled("t1", "core-a") is True

    eng.disable("t1", "suite-b")
    st = eng.disable("t1", "core-a")
    assert st.enabled is False
    assert eng.get_state("t1", "core-a") == TenantModuleStatus.disabled


def test_repeated_transitions_are_errors():
    eng = _ab()
    with pytest.raises(AlreadyDisabledError):
        eng.disable("t1", "core-a")
    eng.enable("t1", "core-a")
    with pytest.raises(AlreadyEnabledError):
        eng.enable("t1", "core-a")
    eng.disable("t1", "core-a")
    with pytest.raises(AlreadyDisabledError):
        eng.disable("t1", "core-a")


def test_unknown_module():
    eng = _ab()
    with pytest.raises(UnknownModuleError) as ei:
        eng.enable("t1", "core-zzz")
    assert ei.value.code == "MODULE_NOT_FOUND"
    assert ei.value.tenant_id == "t1"
    with pytest.raises(UnknownModuleError):
        eng.disable("t1", "core-zzz")


@pytest.mark.parametrize("tenant_id", ["", " t1", "t/1", None, "x" * 200])
def test_malformed_tenant_id(tenant_id):
    eng = _ab()
    with pytest.raises(InvalidIdentifierError) as ei:
        eng.is_enabled(tenant_id, "core-a")
    assert ei.value.code == "INVALID_IDENTIFIER"


def test_malformed_module_id_on_reads():
    eng = _ab()
    with pytest.raises(InvalidIdentifierError):
        eng.get_state("t1", "Not A Module")
    # well-formed but unknown is simply absent
    assert eng.get_state("t1", "core-unknown") == TenantModuleStatus.absent
    assert eng.is_enabled("t1", "core-unknown") is False


def test_tenant_id_shapes():
    assert is_valid_tenant_id("acme")
    assert is_valid_tenant_id("org:acme.eu-1")
    assert is_valid_tenant_id("user@example.com")
    assert not is_valid_tenant_id("-acme")


def test_tenants_are_isolated():
    eng = _ab()
    eng.enable("t1", "core-a")
    assert eng.is_enabled("t1", "core-a") is True
    assert eng.is_enabled("t2", "core-a") is False
    with pytest.raises(DependencyNotEnabledError):
        eng.enable("t2", "suite-b")
    assert eng.get_enabled_modules("t2") == []
    assert eng.enabled_tenants("core-a") == ["t1"]


def test_timestamps_are_stamped_from_clock():
    clock = FakeClock(1_700_000_000.0)
    eng = _ab(clock=clock)
    st = eng.enable("t1", "core-a")
    assert st.enabled_at == "2023-11-14T22:13:20Z"
    assert st.disabled_at is None

    clock.advance(60)
    st = eng.disable("t1", "core-a")
    assert st.enabled_at == "2023-11-14T22:13:20Z"
    assert st.disabled_at == "2023-11-14T22:14:20Z"
    assert st.updated_at == "2023-11-14T22:14:20Z"

    rec = eng.get_record("t1", "core-a")
    assert rec == st
    assert [s.module_id for s in eng.list_states("t1")] == ["core-a"]


def test_previews_do_not_mutate():
    eng = _ab()
    chk = eng.can_enable("t1", "suite-b")
    assert chk.allowed is False
    assert chk.reason_code == "DEPENDENCY_NOT_ENABLED"
    assert chk.blocking_modules == ["core-a"]
    assert eng.list_states("t1") == []

    assert eng.can_enable("t1", "core-a").allowed is True
    assert eng.can_disable("t1", "core-a").reason_code == "ALREADY_DISABLED"
    assert eng.can_enable("t1", "core-nope").reason_code == "MODULE_NOT_FOUND"

    eng.enable("t1", "core-a")
    eng.enable("t1", "suite-b")
    chk = eng.can_disable("t1", "core-a")
    assert chk.allowed is False
    assert chk.blocking_modules == ["suite-b"]
    assert eng.can_disable("t1", "suite-b").allowed is True


def test_events_for_transitions_and_denials():
    bus = RecordingBus()
    eng = _ab(bus=bus)
    with pytest.raises(DependencyNotEnabledError):
        eng.enable("t1", "suite-b", trace_id="tr-1")
    eng.enable("t1", "core-a", trace_id="tr-2")
    eng.disable("t1", "core-a", trace_id="tr-3")

    assert bus.types() == ["tenant_module.enable_denied", "tenant_module.enabled", "tenant_module.disabled"]
    denied = bus.events[0]
    assert denied.trace_id == "tr-1"
    assert denied.severity.value == "WARN"
    assert denied.source_subsystem.value == "tenants"
    assert denied.payload["reason"] == "DEPENDENCY_NOT_ENABLED"
    assert denied.payload["related_modules"] == ["core-a"]
    assert bus.events[1].payload == {"tenant_id": "t1", "module_id": "core-a", "enabled": True}
