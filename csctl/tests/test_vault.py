import pytest

from csctl.modules.models import InstallConfig, InstallVault, SecretEntry
from csctl.modules.vault import (
    KUBECONFIG_PLACEHOLDER,
    POSTGRES_SERVICES,
    VaultError,
    capitalize,
    extract_secrets_into_vault,
    merge_vault_into_config,
    missing_required_entries,
)


def test_capitalize():
    assert capitalize("public_api") == "Publicapi"
    assert capitalize("auth") == "Auth"


def test_extract_covers_every_generated_secret(prod_config):
    vault = InstallVault()
    extract_secrets_into_vault(prod_config, vault)
    names = vault.names()

    for name in [
        "domainAuthPrivateKey",
        "domainAuthPublicKey",
        "selfSignedCaKeyPem",
        "cephSshPrivateKey",
        "postgresCaKeyPem",
        "postgresPassword",
        "postgresPrimaryServerKeyPem",
        "postgresReplicaPassword",
        "postgresReplicaServerKeyPem",
        "managedServiceSecrets",
    ]:
        assert name in names
    for service in POSTGRES_SERVICES:
        assert f"postgresPassword{capitalize(service)}" in names
        assert vault.get(f"postgresUser{capitalize(service)}").value == f"{service}_blue"

    assert vault.get("cephSshPrivateKey").secret_file.name == "id_rsa"
    assert vault.get("postgresPrimaryServerKeyPem").value == prod_config.postgres.primary.private_key
    assert vault.get("postgresReplicaServerKeyPem").value == prod_config.postgres.replica.private_key
    assert "kubeConfig" not in names
    assert "registryUsername" not in names
    assert missing_required_entries(vault) == []


def test_extract_keeps_entry_order_and_unknown_entries(prod_config):
    vault = InstallVault(secrets=[
        SecretEntry.password("customSecret", "keep-me"),
        SecretEntry.password("postgresPassword", "old"),
    ])
    changed = extract_secrets_into_vault(prod_config, vault)

    assert vault.names()[:2] == ["customSecret", "postgresPassword"]
    assert vault.get("customSecret").value == "keep-me"
    assert vault.get("postgresPassword").value == prod_config.postgres.admin_password
    assert "postgresPassword" in changed
    assert extract_secrets_into_vault(prod_config, vault) == []


def test_extract_only_touches_named_entries(prod_config):
    vault = InstallVault()
    extract_secrets_into_vault(prod_config, vault)
    old_password = vault.get("postgresPassword").value

    prod_config.postgres.admin_password = "changed"
    prod_config.postgres.primary.private_key = "new-key"
    changed = extract_secrets_into_vault(prod_config, vault, only=["postgresPrimaryServerKeyPem"])

    assert changed == ["postgresPrimaryServerKeyPem"]
    assert vault.get("postgresPassword").value == old_password
    assert vault.get("postgresPrimaryServerKeyPem").value == "new-key"


def test_external_kubernetes_gets_placeholder_once(prod_config):
    prod_config.kubernetes.managed_by_codesphere = False
    vault = InstallVault()
    extract_secrets_into_vault(prod_config, vault)
    assert vault.get("kubeConfig").value == KUBECONFIG_PLACEHOLDER

    real = SecretEntry.file("kubeConfig", "kubeConfig", "apiVersion: v1\n")
    vault.upsert(real)
    extract_secrets_into_vault(prod_config, vault)
    assert vault.get("kubeConfig").value == "apiVersion: v1\n"


def test_registry_placeholders_are_not_overwritten(prod_config):
    prod_config.registry = {"server": "ghcr.io"}
    vault = InstallVault(secrets=[SecretEntry.password("registryPassword", "real")])
    extract_secrets_into_vault(prod_config, vault)
    assert vault.get("registryUsername").value == "YOUR_REGISTRY_USERNAME"
    assert vault.get("registryPassword").value == "real"


def test_merge_restores_secrets(prod_config):
    vault = InstallVault()
    extract_secrets_into_vault(prod_config, vault)

    config = InstallConfig.unmarshal(prod_config.marshal())
    assert config.postgres.primary.private_key == ""
    merge_vault_into_config(config, vault)

    assert config.postgres.primary.private_key == prod_config.postgres.primary.private_key
    assert config.postgres.replica.private_key == prod_config.postgres.replica.private_key
    assert config.postgres.ca_cert_private_key == prod_config.postgres.ca_cert_private_key
    assert config.postgres.user_passwords == prod_config.postgres.user_passwords
    assert config.cluster.ingress_ca_key == prod_config.cluster.ingress_ca_key
    assert config.codesphere.domain_auth_public_key == prod_config.codesphere.domain_auth_public_key


def test_merge_skips_entries_for_unconfigured_sections(prod_config):
    vault = InstallVault()
    extract_secrets_into_vault(prod_config, vault)
    vault.upsert(SecretEntry.password("acmeEabKeyId", "kid"))

    config = InstallConfig.unmarshal(prod_config.marshal())
    merge_vault_into_config(config, vault)
    assert config.cluster.certificates.acme is None


def test_merge_loads_dns01_secrets():
    config = InstallConfig()
    config.cluster.certificates.acme = {"enabled": True, "solver": {"dns01": {"provider": "cloudflare"}}}
    vault = InstallVault(secrets=[SecretEntry.password("acmeDNS01ApiToken", "token")])

    merge_vault_into_config(config, vault)
    assert config.cluster.certificates.acme.solver.dns01.secrets == {"apiToken": "token"}


def test_merge_requires_private_half_of_issued_material(prod_config):
    vault = InstallVault()
    extract_secrets_into_vault(prod_config, vault)
    vault.secrets = [entry for entry in vault.secrets if entry.name != "postgresCaKeyPem"]

    config = InstallConfig.unmarshal(prod_config.marshal())
    with pytest.raises(VaultError, match="postgresCaKeyPem"):
        merge_vault_into_config(config, vault)


def test_missing_required_entries():
    vault = InstallVault(secrets=[SecretEntry.password("cephSshPrivateKey", "x")])
    assert missing_required_entries(vault) == ["selfSignedCaKeyPem", "domainAuthPrivateKey", "domainAuthPublicKey"]
