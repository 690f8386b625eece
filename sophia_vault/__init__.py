"""Sophia Vault: encrypted local storage of provider credentials."""
from .version import __version__
from .vault import SecretStore, VaultConfig
from .providers import ProviderRegistry, ProviderType, ProviderConfig

__all__ = [
    "__version__",
    "SecretStore",
    "VaultConfig",
    "ProviderRegistry",
    "ProviderType",
    "ProviderConfig",
]
