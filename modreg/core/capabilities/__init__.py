from modreg.core.capabilities.index import CapabilityIndex
from modreg.core.capabilities.models import CapabilityResolution

__all__ = ["CapabilityIndex", "CapabilityResolution"]
