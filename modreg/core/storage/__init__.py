from modreg.core.storage.base import RegistryStorage
from modreg.core.storage.json_file import JsonFileStorage
from modreg.core.storage.memory import InMemoryStorage

__all__ = ["InMemoryStorage", "JsonFileStorage", "RegistryStorage"]
