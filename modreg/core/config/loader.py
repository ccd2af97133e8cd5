from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import ValidationError

from modreg.core.config.io import read_json_file
from modreg.core.config.models import RegistryConfig
from modreg.core.errors import ConfigError


def default_config_dict() -> Dict[str, Any]:
    return RegistryConfig().model_dump(mode="json")


def validate_config(raw: Dict[str, Any]) -> RegistryConfig:
    if not isinstance(raw, dict):
        raise ConfigError("registry config must be an object.")
    try:
        return RegistryConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError("registry config is invalid.", errors=[str(x.get("msg")) for x in e.errors()]) from e


def load_config(path: Optional[str] = None) -> RegistryConfig:
    """
    Missing file means defaults; a corrupt or invalid file is a hard error.
    """
    if not path:
        return RegistryConfig()
    rr = read_json_file(path)
    if not rr.ok:
        if rr.error == "missing":
            return RegistryConfig()
        raise ConfigError(f"registry config unreadable: {rr.error}", path=path)
    return validate_config(rr.data)
