from modreg.core.tenants.engine import TenantEnablementEngine, is_valid_tenant_id
from modreg.core.tenants.models import TenantModuleState, TenantModuleStatus, TransitionCheck

__all__ = ["TenantEnablementEngine", "TenantModuleState", "TenantModuleStatus", "TransitionCheck", "is_valid_tenant_id"]
