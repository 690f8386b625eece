"""Tests for the provider registry on top of the secret store."""
import pytest

from sophia_vault.providers import ProviderConfig, ProviderRegistry, ProviderType
from sophia_vault.vault.exceptions import StorageError
from sophia_vault.vault.secret_store import SecretStore


@pytest.fixture
def registry(store):
    return ProviderRegistry(store)


class TestProviderType:
    """Tests for provider names."""

    @pytest.mark.parametrize("name, expected", [
        ("gemini", ProviderType.GEMINI),
        ("OpenAI", ProviderType.OPENAI),
        (" deepseek ", ProviderType.DEEPSEEK),
    ])
    def test_from_str(self, name, expected):
        assert ProviderType.from_str(name) is expected

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            ProviderType.from_str("mistral")


class TestDefaults:
    """Tests for factory provider settings."""

    def test_every_provider_has_defaults(self, registry):
        for provider in ProviderType:
            assert registry.get_config(provider).provider is provider

    def test_only_ollama_enabled(self, registry):
        enabled = [p for p in ProviderType if registry.get_config(p).enabled]
        assert enabled == [ProviderType.OLLAMA]

    def test_ollama_needs_no_key(self):
        config = ProviderConfig.default_for(ProviderType.OLLAMA)
        assert not config.requires_api_key

    def test_gemini_key_id(self):
        config = ProviderConfig.default_for(ProviderType.GEMINI)
        assert config.api_key_id == "gemini_api_key"


class TestApiKeys:
    """Tests for storing provider keys."""

    def test_set_and_get_api_key(self, registry, store):
        registry.set_api_key("openai_api_key", "sk-1")
        assert registry.get_api_key("openai_api_key") == "sk-1"
        assert store.get_secret("openai_api_key") == "sk-1"

    def test_delete_api_key(self, registry):
        registry.set_api_key("openai_api_key", "sk-1")
        registry.delete_api_key("openai_api_key")
        assert registry.get_api_key("openai_api_key") is None

    def test_save_provider_key_enables_provider(self, registry):
        config = registry.save_provider_key("Anthropic", "sk-ant")
        assert config.enabled
        assert registry.provider_api_key(ProviderType.ANTHROPIC) == "sk-ant"
        assert registry.has_api_key(ProviderType.ANTHROPIC)

    def test_save_key_for_keyless_provider(self, registry):
        with pytest.raises(ValueError):
            registry.save_provider_key("ollama", "nothing")

    def test_save_key_for_unknown_provider(self, registry):
        with pytest.raises(ValueError):
            registry.save_provider_key("mistral", "key")

    def test_missing_key(self, registry):
        assert registry.provider_api_key(ProviderType.GEMINI) is None
        assert not registry.has_api_key(ProviderType.GEMINI)
        assert registry.provider_api_key(ProviderType.OLLAMA) is None

    def test_keys_survive_restart(self, vault_config):
        ProviderRegistry(SecretStore.open(vault_config)).save_provider_key(
            "deepseek", "ds-key",
        )
        registry = ProviderRegistry(SecretStore.open(vault_config))
        assert registry.provider_api_key(ProviderType.DEEPSEEK) == "ds-key"


class TestRouting:
    """Tests for active provider ordering."""

    def test_fallback_to_ollama(self, registry):
        registry.set_enabled(ProviderType.OLLAMA, False)
        assert registry.active_provider_order() == [ProviderType.OLLAMA]

    def test_gemini_first(self, registry):
        registry.set_enabled(ProviderType.OPENAI, True)
        registry.set_enabled(ProviderType.GEMINI, True)
        assert registry.active_provider_order() == [
            ProviderType.GEMINI, ProviderType.OPENAI, ProviderType.OLLAMA,
        ]

    def test_reset_config_keeps_key(self, registry):
        registry.save_provider_key("openai", "sk-1")
        registry.set_config(
            registry.get_config(ProviderType.OPENAI).model_copy(
                update={"model": "gpt-4o"},
            )
        )
        config = registry.reset_config(ProviderType.OPENAI)
        assert config.model == "gpt-4o-mini"
        assert not config.enabled
        assert registry.get_api_key("openai_api_key") == "sk-1"


class TestOnboarding:
    """Tests for the first-run credential."""

    def test_store_initial_credential(self, registry):
        config = registry.store_initial_credential("gemini_api_key", "AIza...")
        assert config.enabled
        assert registry.provider_api_key(ProviderType.GEMINI) == "AIza..."
        assert registry.active_provider_order()[0] is ProviderType.GEMINI

    def test_custom_key_id(self, registry):
        registry.store_initial_credential("my_gemini", "AIza-custom")
        assert registry.get_config(ProviderType.GEMINI).api_key_id == "my_gemini"
        assert registry.provider_api_key(ProviderType.GEMINI) == "AIza-custom"


class TestCheckVault:
    """Tests for the vault diagnostic."""

    def test_healthy_vault_without_gemini(self, registry, store):
        result = registry.check_vault()
        assert result.writable and result.readable
        assert not result.gemini_key_present
        assert result.gemini_key_preview is None
        assert store.keys() == []

    def test_reports_masked_gemini_key(self, registry):
        registry.set_api_key("gemini_api_key", "AIzaSyABCDEFGHIJKLMNOP")
        result = registry.check_vault()
        assert result.gemini_key_present
        assert result.gemini_key_preview == "AIzaSyABCD..."

    def test_write_failure_is_reported(self, registry, store, monkeypatch):
        def _failing_save(secrets):
            raise StorageError("read-only filesystem")

        monkeypatch.setattr(store.backend, "save", _failing_save)
        result = registry.check_vault()
        assert not result.writable
        assert "read-only" in result.error
