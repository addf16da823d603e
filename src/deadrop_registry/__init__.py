"""deadrop-registry - Access-controlled dead drops for opaque payloads.

Usage:
    from deadrop_registry import DeadDropRegistry

    registry = DeadDropRegistry.in_memory(administrator="admin")

    drop_id = registry.create("alice", "bob", b"ciphertext")
    payload = registry.retrieve("bob", drop_id)
    registry.list_drops_for_user("alice")  # [0]
    registry.delete("admin", drop_id)

    # Persistent registry in a .deaddrop directory
    registry = DeadDropRegistry.create_local(administrator="admin")
"""

from deadrop_registry._version import __version__
from deadrop_registry.backends import Drop
from deadrop_registry.discovery import RegistryNotFound
from deadrop_registry.errors import InvalidPayload, NotAuthorized, NotFound, RegistryError
from deadrop_registry.options import RegistryConfigError, RegistryOptions
from deadrop_registry.registry import DeadDropRegistry

__all__ = [
    "__version__",
    "DeadDropRegistry",
    "Drop",
    "RegistryOptions",
    "RegistryError",
    "InvalidPayload",
    "NotFound",
    "NotAuthorized",
    "RegistryNotFound",
    "RegistryConfigError",
]
