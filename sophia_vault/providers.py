"""
Provider Registry — Model provider settings and their API keys.

Provider settings (endpoint, model, enabled flag) are plain data; the API
keys themselves are kept in the :class:`~sophia_vault.vault.SecretStore`
under each provider's ``api_key_id``.

Security Note:
    Never log API keys. ``check_vault()`` only reports a masked preview.
"""
import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .vault import SecretStore, VaultError

logger = logging.getLogger("sophia.providers")

# Gemini-first routing priority.
_PROVIDER_PRIORITY = (
    "gemini",
    "deepseek",
    "openai",
    "anthropic",
    "openrouter",
    "ollama",
)

_PROBE_KEY = "__vault_probe__"
_PREVIEW_LENGTH = 10


class ProviderType(str, Enum):
    """Model providers known to the application."""

    GEMINI = "gemini"
    DEEPSEEK = "deepseek"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"
    OLLAMA = "ollama"

    @classmethod
    def from_str(cls, value: str) -> "ProviderType":
        """Case-insensitive lookup by provider name.

        Raises:
            ValueError: If the name is not a known provider.
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown provider: {value!r}") from None


class ProviderConfig(BaseModel):
    """Settings of one model provider."""

    provider: ProviderType
    api_key_id: str = ""
    endpoint: str
    model: str
    enabled: bool = False

    @property
    def requires_api_key(self) -> bool:
        return bool(self.api_key_id)

    @classmethod
    def default_for(cls, provider: ProviderType) -> "ProviderConfig":
        """Factory defaults for a provider."""
        return cls(provider=provider, **_DEFAULTS[provider])


_DEFAULTS: dict[ProviderType, dict] = {
    ProviderType.GEMINI: {
        "api_key_id": "gemini_api_key",
        "endpoint": "https://generativelanguage.googleapis.com/v1beta",
        "model": "gemini-2.5-flash-lite",
    },
    ProviderType.DEEPSEEK: {
        "api_key_id": "deepseek_api_key",
        "endpoint": "https://api.deepseek.com/v1",
        "model": "deepseek-chat",
    },
    ProviderType.OPENAI: {
        "api_key_id": "openai_api_key",
        "endpoint": "https://api.openai.com/v1",
        "model": "gpt-4o-mini",
    },
    ProviderType.ANTHROPIC: {
        "api_key_id": "anthropic_api_key",
        "endpoint": "https://api.anthropic.com/v1",
        "model": "claude-3-5-haiku-20241022",
    },
    ProviderType.OPENROUTER: {
        "api_key_id": "openrouter_api_key",
        "endpoint": "https://openrouter.ai/api/v1",
        "model": "openai/gpt-4o",
    },
    ProviderType.OLLAMA: {
        "api_key_id": "",
        "endpoint": "http://localhost:11434",
        "model": "llama3.2:3b",
        "enabled": True,
    },
}


class VaultCheck(BaseModel):
    """Result of :meth:`ProviderRegistry.check_vault`."""

    writable: bool
    readable: bool
    gemini_key_present: bool = False
    gemini_key_preview: Optional[str] = None
    error: Optional[str] = None


class ProviderRegistry:
    """Provider settings plus API-key access through the secret store.

    Lookup of a provider's key: ``config.api_key_id`` → ``SecretStore``.
    """

    def __init__(self, store: SecretStore):
        self._store = store
        self._providers: dict[ProviderType, ProviderConfig] = {
            provider: ProviderConfig.default_for(provider)
            for provider in ProviderType
        }

    # ------------------------------------------------------------------
    # Provider settings
    # ------------------------------------------------------------------

    def get_config(self, provider: ProviderType) -> ProviderConfig:
        return self._providers[provider]

    def set_config(self, config: ProviderConfig) -> None:
        """Replace the settings of ``config.provider``."""
        self._providers[config.provider] = config

    def reset_config(self, provider: ProviderType) -> ProviderConfig:
        """Restore factory settings for a provider. The stored key is kept."""
        config = ProviderConfig.default_for(provider)
        self._providers[provider] = config
        return config

    def set_enabled(self, provider: ProviderType, enabled: bool) -> None:
        config = self._providers[provider]
        self._providers[provider] = config.model_copy(update={"enabled": enabled})

    def active_provider_order(self) -> list[ProviderType]:
        """Enabled providers in routing priority; Ollama when none is enabled."""
        active = [
            ProviderType(name) for name in _PROVIDER_PRIORITY
            if self._providers[ProviderType(name)].enabled
        ]
        if not active:
            active.append(ProviderType.OLLAMA)
        return active

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    def set_api_key(self, key_id: str, value: str) -> None:
        self._store.set_secret(key_id, value)

    def get_api_key(self, key_id: str) -> Optional[str]:
        return self._store.get_secret(key_id)

    def delete_api_key(self, key_id: str) -> None:
        self._store.delete_secret(key_id)

    def provider_api_key(self, provider: ProviderType) -> Optional[str]:
        """Return the stored API key of a provider, if any."""
        config = self._providers[provider]
        if not config.requires_api_key:
            return None
        key = self._store.get_secret(config.api_key_id)
        if key is None:
            logger.warning(
                "No API key found for provider %s (key id: %s)",
                provider.value, config.api_key_id,
            )
        return key

    def has_api_key(self, provider: ProviderType) -> bool:
        return self.provider_api_key(provider) is not None

    def save_provider_key(self, provider: str, api_key: str) -> ProviderConfig:
        """Store a provider's API key and enable the provider.

        Args:
            provider: Provider name, e.g. ``"openai"``.
            api_key: Key to store.

        Returns:
            The updated provider settings.

        Raises:
            ValueError: If the provider is unknown or takes no API key.
        """
        provider_type = ProviderType.from_str(provider)
        config = self._providers[provider_type]
        if not config.requires_api_key:
            raise ValueError(f"Provider {provider_type.value} does not use an API key")
        self._store.set_secret(config.api_key_id, api_key)
        self.set_enabled(provider_type, True)
        logger.info("Saved API key for provider %s", provider_type.value)
        return self._providers[provider_type]

    def store_initial_credential(self, key_id: str, value: str) -> ProviderConfig:
        """Onboarding: store the first Gemini credential and enable Gemini.

        The Gemini settings are pointed at ``key_id`` so a custom key name
        chosen during onboarding is found later.
        """
        logger.info("Storing initial credential with key id: %s", key_id)
        self._store.set_secret(key_id, value)
        config = self._providers[ProviderType.GEMINI].model_copy(
            update={"api_key_id": key_id, "enabled": True},
        )
        self._providers[ProviderType.GEMINI] = config
        return config

    def check_vault(self) -> VaultCheck:
        """Write, read back and remove a probe secret; report the Gemini key.

        Storage failures are reported in the result instead of raised.
        """
        try:
            self._store.set_secret(_PROBE_KEY, "probe")
        except VaultError as err:
            logger.error("Vault write check failed: %s", err)
            return VaultCheck(writable=False, readable=False, error=str(err))
        readable = self._store.get_secret(_PROBE_KEY) == "probe"
        try:
            self._store.delete_secret(_PROBE_KEY)
        except VaultError as err:
            logger.error("Vault cleanup after check failed: %s", err)
            return VaultCheck(writable=True, readable=readable, error=str(err))
        gemini_key = self.provider_api_key(ProviderType.GEMINI)
        return VaultCheck(
            writable=True,
            readable=readable,
            gemini_key_present=gemini_key is not None,
            gemini_key_preview=(
                f"{gemini_key[:_PREVIEW_LENGTH]}..." if gemini_key else None
            ),
        )
