"""Shared fixtures for the vault test-suite."""
import pytest

from sophia_vault.vault import crypto
from sophia_vault.vault.config import VaultConfig
from sophia_vault.vault.crypto import derive_master_key
from sophia_vault.vault.file_backend import FileBackend
from sophia_vault.vault.secret_store import SecretStore

TEST_HOST_ID = "0f1e2d3c4b5a69788796a5b4c3d2e1f0"


@pytest.fixture(autouse=True)
def fixed_host_identifier(monkeypatch):
    """Never depend on the real machine id of the test runner."""
    monkeypatch.setattr(crypto, "get_host_identifier", lambda: TEST_HOST_ID)
    return TEST_HOST_ID


@pytest.fixture
def master_key():
    return derive_master_key(TEST_HOST_ID)


@pytest.fixture
def vault_config(tmp_path):
    return VaultConfig(storage_dir=tmp_path / "sophia")


@pytest.fixture
def backend(vault_config, master_key):
    return FileBackend(vault_config, master_key=master_key)


@pytest.fixture
def store(vault_config):
    return SecretStore.open(vault_config)
