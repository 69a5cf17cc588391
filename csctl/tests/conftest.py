import pytest

from csctl.modules import crypto
from csctl.modules.manager import InstallConfigManager
from csctl.modules.models import InstallConfig


@pytest.fixture(autouse=True)
def fast_keys(monkeypatch):
    """Smaller RSA keys keep the suite fast; the sizes are read at call time."""
    monkeypatch.setattr(crypto, "SERVER_KEY_BITS", 2048)
    monkeypatch.setattr(crypto, "SSH_KEY_BITS", 2048)


@pytest.fixture
def prod_config() -> InstallConfig:
    """Production profile with defaults collected and secrets generated."""
    manager = InstallConfigManager()
    manager.apply_profile("prod")
    manager.collect()
    manager.generate_secrets()
    return manager.config


@pytest.fixture
def written_install(tmp_path):
    """A config and vault written by the init flow with the prod profile."""
    from csctl.modules.install_config import init_install_config

    config_path = tmp_path / "config.yaml"
    vault_path = tmp_path / "prod.vault.yaml"
    init_install_config(config_path, vault_path, profile="prod")
    return config_path, vault_path
