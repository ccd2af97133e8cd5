from modreg.core.config.loader import default_config_dict, load_config, validate_config
from modreg.core.config.models import RegistryConfig, StorageBackend

__all__ = ["RegistryConfig", "StorageBackend", "default_config_dict", "load_config", "validate_config"]
