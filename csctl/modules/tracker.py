"""
Change tracking for updates of an existing installation.

Overrides are applied field by field. Each field that actually changes value is
looked up in ``FIELD_DEPENDENCIES``; if some secret depends on it, that secret
class is flagged. Regeneration then re-issues exactly the flagged material
with the existing PostgreSQL CA.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from ..config import Config
from ..utils import display_value
from ..utils.fields import get_field, is_empty, set_field
from . import crypto
from .models import InstallConfig
from .secret_generator import issue_primary_certificate, issue_replica_certificate

logger = logging.getLogger("csctl.tracker")


class RegenerationError(Exception):
    """Raised when flagged secrets cannot be re-issued."""
    pass


class SecretClass(enum.Enum):
    POSTGRES_PRIMARY_CERT = "postgres-primary-cert"
    POSTGRES_REPLICA_CERT = "postgres-replica-cert"
    ACME_CONFIG = "acme-config"


FIELD_DEPENDENCIES: Dict[str, SecretClass] = {
    "postgres.primary.ip": SecretClass.POSTGRES_PRIMARY_CERT,
    "postgres.primary.hostname": SecretClass.POSTGRES_PRIMARY_CERT,
    "postgres.replica.ip": SecretClass.POSTGRES_REPLICA_CERT,
    "postgres.replica.name": SecretClass.POSTGRES_REPLICA_CERT,
    "cluster.certificates.acme.enabled": SecretClass.ACME_CONFIG,
    "cluster.certificates.acme.name": SecretClass.ACME_CONFIG,
    "cluster.certificates.acme.email": SecretClass.ACME_CONFIG,
    "cluster.certificates.acme.server": SecretClass.ACME_CONFIG,
    "cluster.certificates.acme.eab_key_id": SecretClass.ACME_CONFIG,
    "cluster.certificates.acme.eab_mac_key": SecretClass.ACME_CONFIG,
    "cluster.certificates.acme.solver.dns01.provider": SecretClass.ACME_CONFIG,
}

VAULT_ENTRIES: Dict[SecretClass, List[str]] = {
    SecretClass.POSTGRES_PRIMARY_CERT: ["postgresPrimaryServerKeyPem"],
    SecretClass.POSTGRES_REPLICA_CERT: ["postgresReplicaServerKeyPem", "postgresReplicaPassword"],
    SecretClass.ACME_CONFIG: ["acmeEabKeyId", "acmeEabMacKey"],
}


class SecretDependencyTracker:
    """Flags, one per secret class, set when a field it depends on changed."""

    def __init__(self):
        self._flags: Set[SecretClass] = set()
        self.changed_fields: List[str] = []

    def mark_changed(self, path: str) -> Optional[SecretClass]:
        """Record that ``path`` changed value; returns the secret class it flagged."""
        self.changed_fields.append(path)
        dependent = FIELD_DEPENDENCIES.get(path)
        if dependent is not None:
            self._flags.add(dependent)
        return dependent

    def needs(self, secret_class: SecretClass) -> bool:
        return secret_class in self._flags

    def has_changes(self) -> bool:
        return bool(self._flags)

    @property
    def flags(self) -> Set[SecretClass]:
        return set(self._flags)

    def affected_vault_entries(self) -> List[str]:
        entries = []
        for secret_class in SecretClass:
            if secret_class in self._flags:
                entries.extend(VAULT_ENTRIES[secret_class])
        return entries


@dataclass
class ConfigUpdate:
    """Override values for an existing config. ``None`` and empty mean unchanged."""
    postgres_primary_ip: Optional[str] = None
    postgres_primary_hostname: Optional[str] = None
    postgres_replica_ip: Optional[str] = None
    postgres_replica_name: Optional[str] = None
    postgres_server_address: Optional[str] = None

    ceph_nodes_subnet: Optional[str] = None

    k8s_api_server: Optional[str] = None
    k8s_pod_cidr: Optional[str] = None
    k8s_service_cidr: Optional[str] = None

    gateway_service_type: Optional[str] = None
    gateway_ips: Optional[List[str]] = None
    public_gateway_service_type: Optional[str] = None
    public_gateway_ips: Optional[List[str]] = None

    acme_enabled: bool = False
    acme_issuer_name: Optional[str] = None
    acme_email: Optional[str] = None
    acme_server: Optional[str] = None
    acme_eab_key_id: Optional[str] = None
    acme_eab_mac_key: Optional[str] = None
    acme_dns01_provider: Optional[str] = None

    domain: Optional[str] = None
    public_ip: Optional[str] = None
    workspace_hosting_base_domain: Optional[str] = None
    custom_domains_cname_base_domain: Optional[str] = None
    dns_servers: Optional[List[str]] = None


@dataclass(frozen=True)
class Override:
    """Maps a ``ConfigUpdate`` attribute onto a config field.

    ``requires`` names a section that must already exist for the override to
    apply; ``acme`` overrides only apply together with ``acme_enabled``.
    """
    option: str
    path: str
    label: str
    requires: Optional[str] = None
    acme: bool = False


OVERRIDES: List[Override] = [
    Override("postgres_primary_ip", "postgres.primary.ip", "PostgreSQL primary IP", requires="postgres.primary"),
    Override("postgres_primary_hostname", "postgres.primary.hostname", "PostgreSQL primary hostname",
             requires="postgres.primary"),
    Override("postgres_replica_ip", "postgres.replica.ip", "PostgreSQL replica IP", requires="postgres.replica"),
    Override("postgres_replica_name", "postgres.replica.name", "PostgreSQL replica name",
             requires="postgres.replica"),
    Override("postgres_server_address", "postgres.server_address", "PostgreSQL server address"),
    Override("ceph_nodes_subnet", "ceph.nodes_subnet", "Ceph nodes subnet"),
    Override("k8s_api_server", "kubernetes.api_server_host", "Kubernetes API server host"),
    Override("k8s_pod_cidr", "kubernetes.pod_cidr", "Kubernetes Pod CIDR"),
    Override("k8s_service_cidr", "kubernetes.service_cidr", "Kubernetes Service CIDR"),
    Override("gateway_service_type", "cluster.gateway.service_type", "cluster gateway service type"),
    Override("gateway_ips", "cluster.gateway.ip_addresses", "cluster gateway IP addresses"),
    Override("public_gateway_service_type", "cluster.public_gateway.service_type",
             "cluster public gateway service type"),
    Override("public_gateway_ips", "cluster.public_gateway.ip_addresses", "cluster public gateway IP addresses"),
    Override("acme_enabled", "cluster.certificates.acme.enabled", "ACME enabled", acme=True),
    Override("acme_issuer_name", "cluster.certificates.acme.name", "ACME issuer name", acme=True),
    Override("acme_email", "cluster.certificates.acme.email", "ACME email", acme=True),
    Override("acme_server", "cluster.certificates.acme.server", "ACME server", acme=True),
    Override("acme_eab_key_id", "cluster.certificates.acme.eab_key_id", "ACME EAB key ID", acme=True),
    Override("acme_eab_mac_key", "cluster.certificates.acme.eab_mac_key", "ACME EAB MAC key", acme=True),
    Override("acme_dns01_provider", "cluster.certificates.acme.solver.dns01.provider", "ACME DNS-01 provider",
             acme=True),
    Override("domain", "codesphere.domain", "Codesphere domain"),
    Override("public_ip", "codesphere.public_ip", "Codesphere public IP"),
    Override("workspace_hosting_base_domain", "codesphere.workspace_hosting_base_domain",
             "workspace hosting base domain"),
    Override("custom_domains_cname_base_domain", "codesphere.custom_domains.c_name_base_domain",
             "custom domains CNAME base domain"),
    Override("dns_servers", "codesphere.dns_servers", "DNS servers"),
]


def apply_updates(config: InstallConfig, update: ConfigUpdate, tracker: SecretDependencyTracker) -> List[str]:
    """Apply every supplied override that differs from the current value.

    Returns:
        Paths of the fields that changed
    """
    changed = []
    for override in OVERRIDES:
        value = getattr(update, override.option)
        if is_empty(value) or (override.acme and not update.acme_enabled):
            continue
        if override.requires and get_field(config, override.requires) is None:
            logger.warning(f"Ignoring {override.label}: {override.requires} is not configured")
            continue

        current = get_field(config, override.path)
        if current == value:
            continue
        logger.info(
            f"Updating {override.label}: "
            f"{display_value(override.path, current)} -> {display_value(override.path, value)}"
        )
        set_field(config, override.path, value)
        tracker.mark_changed(override.path)
        changed.append(override.path)
    return changed


def regenerate_secrets(config: InstallConfig, tracker: SecretDependencyTracker) -> List[SecretClass]:
    """Re-issue the flagged server certificates, signed by the existing PostgreSQL CA.

    The CA itself is never rotated.

    Returns:
        The secret classes that were regenerated
    """
    postgres = config.postgres
    regenerated = []
    needs_primary = tracker.needs(SecretClass.POSTGRES_PRIMARY_CERT)
    needs_replica = tracker.needs(SecretClass.POSTGRES_REPLICA_CERT)

    if needs_primary or needs_replica:
        if not postgres.ca_cert_pem or not postgres.ca_cert_private_key:
            raise RegenerationError("cannot re-issue PostgreSQL server certificates: the PostgreSQL CA is missing")

    try:
        if needs_primary:
            logger.info("Regenerating PostgreSQL primary server certificate...")
            cert = issue_primary_certificate(config, postgres.ca_cert_private_key, postgres.ca_cert_pem)
            postgres.primary.private_key = cert.private_key
            postgres.primary.ssl_config.server_cert_pem = cert.cert_pem
            regenerated.append(SecretClass.POSTGRES_PRIMARY_CERT)

        if needs_replica:
            logger.info("Regenerating PostgreSQL replica server certificate...")
            cert = issue_replica_certificate(config, postgres.ca_cert_private_key, postgres.ca_cert_pem)
            postgres.replica.private_key = cert.private_key
            postgres.replica.ssl_config.server_cert_pem = cert.cert_pem
            if not postgres.replica_password:
                postgres.replica_password = crypto.generate_password(Config.PASSWORD_LENGTH)
            regenerated.append(SecretClass.POSTGRES_REPLICA_CERT)
    except crypto.CryptoError as e:
        raise RegenerationError(f"failed to regenerate secrets: {e}") from e

    if tracker.needs(SecretClass.ACME_CONFIG):
        logger.info("ACME configuration changed, refreshing ACME vault entries")
        regenerated.append(SecretClass.ACME_CONFIG)
    return regenerated
