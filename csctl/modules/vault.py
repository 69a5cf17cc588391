"""
Moving secret material between the install config and the vault.

Every secret held by the install config is bound to a named vault entry in
``SECRET_BINDINGS``. Merging copies vault entries into the config so the rest of
the tool works on one tree; extracting writes config secrets back into the
vault, touching only the entries that are actually affected.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..utils.fields import FieldPathError, get_field, is_empty, set_field
from .models import POSTGRES_MODE_INSTALL, InstallConfig, InstallVault, SecretEntry

logger = logging.getLogger("csctl.vault")

POSTGRES_SERVICES = ["auth", "deployment", "ide", "marketplace", "payment", "public_api", "team", "workspace"]

REQUIRED_VAULT_ENTRIES = ["cephSshPrivateKey", "selfSignedCaKeyPem", "domainAuthPrivateKey", "domainAuthPublicKey"]

DNS01_SECRET_PREFIX = "acmeDNS01"

REGISTRY_USERNAME_PLACEHOLDER = "YOUR_REGISTRY_USERNAME"
REGISTRY_PASSWORD_PLACEHOLDER = "YOUR_REGISTRY_PASSWORD"
KUBECONFIG_PLACEHOLDER = (
    "# YOUR KUBECONFIG CONTENT HERE\n"
    "# Replace this with your actual kubeconfig for the external cluster\n"
)


class VaultError(Exception):
    """Raised when the vault cannot supply what the install config needs."""
    pass


def capitalize(name: str) -> str:
    """``public_api`` -> ``Publicapi``, used to derive vault entry names."""
    name = name.replace("_", "")
    return name[:1].upper() + name[1:]


@dataclass(frozen=True)
class SecretBinding:
    """A vault entry and the install config field it mirrors.

    Attributes:
        name: Vault entry name
        path: Field path on the install config
        file_name: File name for file entries, None for password entries
        key: Member of the dict at ``path`` (per-service passwords)
        required_by: Config field whose presence makes this entry mandatory
    """
    name: str
    path: str
    file_name: Optional[str] = None
    key: Optional[str] = None
    required_by: Optional[str] = None

    def read(self, config: InstallConfig) -> str:
        value = get_field(config, self.path)
        if self.key is not None:
            value = (value or {}).get(self.key)
        return value or ""

    def write(self, config: InstallConfig, value: str) -> bool:
        """Assign ``value`` to the bound field; False if its section is not configured."""
        try:
            if self.key is not None:
                passwords = dict(get_field(config, self.path) or {})
                passwords[self.key] = value
                value = passwords
            set_field(config, self.path, value, create=False)
        except FieldPathError:
            return False
        return True

    def entry(self, value: str) -> SecretEntry:
        if self.file_name is not None:
            return SecretEntry.file(self.name, self.file_name, value)
        return SecretEntry.password(self.name, value)


SECRET_BINDINGS: List[SecretBinding] = [
    SecretBinding("domainAuthPrivateKey", "codesphere.domain_auth_private_key", file_name="key.pem"),
    SecretBinding("domainAuthPublicKey", "codesphere.domain_auth_public_key", file_name="key.pem"),
    SecretBinding("selfSignedCaKeyPem", "cluster.ingress_ca_key", file_name="key.pem",
                  required_by="cluster.certificates.ca.cert_pem"),
    SecretBinding("cephSshPrivateKey", "ceph.ssh_private_key", file_name="id_rsa",
                  required_by="ceph.ceph_adm_ssh_key.public_key"),
    SecretBinding("postgresCaKeyPem", "postgres.ca_cert_private_key", file_name="ca.key",
                  required_by="postgres.ca_cert_pem"),
    SecretBinding("postgresPassword", "postgres.admin_password"),
    SecretBinding("postgresPrimaryServerKeyPem", "postgres.primary.private_key", file_name="primary.key",
                  required_by="postgres.primary.ssl_config.server_cert_pem"),
    SecretBinding("postgresReplicaPassword", "postgres.replica_password"),
    SecretBinding("postgresReplicaServerKeyPem", "postgres.replica.private_key", file_name="replica.key",
                  required_by="postgres.replica.ssl_config.server_cert_pem"),
] + [
    SecretBinding(f"postgresPassword{capitalize(service)}", "postgres.user_passwords", key=service)
    for service in POSTGRES_SERVICES
] + [
    SecretBinding("registryUsername", "registry.username"),
    SecretBinding("registryPassword", "registry.password"),
    SecretBinding("acmeEabKeyId", "cluster.certificates.acme.eab_key_id"),
    SecretBinding("acmeEabMacKey", "cluster.certificates.acme.eab_mac_key"),
]

BINDINGS_BY_NAME = {binding.name: binding for binding in SECRET_BINDINGS}


def _dns01_key(entry_name: str) -> str:
    suffix = entry_name[len(DNS01_SECRET_PREFIX):]
    return suffix[:1].lower() + suffix[1:]


def merge_vault_into_config(config: InstallConfig, vault: InstallVault) -> InstallConfig:
    """Copy every bound vault entry into its install config field, in place.

    Raises:
        VaultError: If the config holds material (e.g. a CA certificate) whose
            private half is missing from the vault
    """
    if config is None:
        raise VaultError("config not loaded")
    if vault is None:
        raise VaultError("vault not loaded")

    missing = [
        binding.name for binding in SECRET_BINDINGS
        if binding.required_by
        and not is_empty(get_field(config, binding.required_by))
        and vault.get(binding.name) is None
    ]
    if missing:
        raise VaultError(f"vault is missing required secrets: {', '.join(missing)}")

    for binding in SECRET_BINDINGS:
        entry = vault.get(binding.name)
        if entry is None:
            continue
        if not binding.write(config, entry.value):
            logger.debug(f"Skipping vault entry {binding.name}: {binding.path} is not configured")

    acme = config.cluster.certificates.acme
    if acme is not None and acme.solver.dns01 is not None:
        acme.solver.dns01.secrets = {
            _dns01_key(entry.name): entry.value
            for entry in vault.secrets
            if entry.name.startswith(DNS01_SECRET_PREFIX)
        }

    logger.debug(f"Merged {len(vault.secrets)} vault entries into the install config")
    return config


def _static_entries(config: InstallConfig) -> List[SecretEntry]:
    """Entries with fixed content that are created once and then left alone."""
    entries = []
    if config.postgres.mode == POSTGRES_MODE_INSTALL and config.postgres.primary is not None:
        entries.extend(
            SecretEntry.password(f"postgresUser{capitalize(service)}", f"{service}_blue")
            for service in POSTGRES_SERVICES
        )
    entries.append(SecretEntry.password("managedServiceSecrets", "[]"))
    if config.registry is not None:
        entries.append(SecretEntry.password("registryUsername", REGISTRY_USERNAME_PLACEHOLDER))
        entries.append(SecretEntry.password("registryPassword", REGISTRY_PASSWORD_PLACEHOLDER))
    if config.kubernetes.needs_kube_config:
        entries.append(SecretEntry.file("kubeConfig", "kubeConfig", KUBECONFIG_PLACEHOLDER))
    return entries


def extract_secrets_into_vault(
    config: InstallConfig,
    vault: InstallVault,
    only: Optional[Iterable[str]] = None,
) -> List[str]:
    """Write the config's secrets into ``vault`` in place.

    Existing entries keep their position and entries the config has no value
    for are left untouched. With ``only``, nothing outside those entry names is
    changed or added.

    Returns:
        Names of the entries that were added or changed
    """
    only = set(only) if only is not None else None
    changed = []

    def wanted(name: str) -> bool:
        return only is None or name in only

    for binding in SECRET_BINDINGS:
        value = binding.read(config)
        if value and wanted(binding.name) and vault.upsert(binding.entry(value)):
            changed.append(binding.name)

    acme = config.cluster.certificates.acme
    if acme is not None and acme.solver.dns01 is not None:
        for key, value in acme.solver.dns01.secrets.items():
            name = f"{DNS01_SECRET_PREFIX}{capitalize(key)}"
            if value and wanted(name) and vault.upsert(SecretEntry.password(name, value)):
                changed.append(name)

    if only is None:
        for entry in _static_entries(config):
            if vault.set_default(entry):
                changed.append(entry.name)

    if changed:
        logger.debug(f"Vault entries updated: {', '.join(changed)}")
    return changed


def missing_required_entries(vault: InstallVault) -> List[str]:
    names = set(vault.names())
    return [name for name in REQUIRED_VAULT_ENTRIES if name not in names]
