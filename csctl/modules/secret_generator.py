"""
Initial secret generation for a new installation.

Generation and placement are separate steps: ``generate_secrets`` only reads
the config and returns a ``GeneratedSecrets`` value, ``place_secrets`` copies
that value into the config fields. A failure during generation therefore
leaves the config untouched.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..config import Config
from . import crypto
from .models import POSTGRES_MODE_INSTALL, InstallConfig
from .vault import POSTGRES_SERVICES

logger = logging.getLogger("csctl.secrets")

INGRESS_CA_NAME = "Cluster Ingress CA"
POSTGRES_CA_NAME = "PostgreSQL CA"


@dataclass
class ServerCertificate:
    private_key: str
    cert_pem: str


@dataclass
class GeneratedSecrets:
    """Freshly generated material waiting to be placed into the config."""
    domain_auth_private_key: str = ""
    domain_auth_public_key: str = ""
    ingress_ca_key: str = ""
    ingress_ca_cert: str = ""
    ceph_ssh_private_key: str = ""
    ceph_ssh_public_key: str = ""
    postgres_ca_key: str = ""
    postgres_ca_cert: str = ""
    postgres_primary: Optional[ServerCertificate] = None
    postgres_replica: Optional[ServerCertificate] = None
    postgres_admin_password: str = ""
    postgres_replica_password: str = ""
    postgres_user_passwords: Dict[str, str] = field(default_factory=dict)


def _generate_ca(name: str):
    return crypto.generate_ca(name, Config.CA_COUNTRY, Config.CA_LOCALITY, Config.CA_ORGANIZATION)


def issue_primary_certificate(config: InstallConfig, ca_key: str, ca_cert: str) -> ServerCertificate:
    primary = config.postgres.primary
    return ServerCertificate(*crypto.generate_server_certificate(ca_key, ca_cert, primary.hostname, [primary.ip]))


def issue_replica_certificate(config: InstallConfig, ca_key: str, ca_cert: str) -> ServerCertificate:
    replica = config.postgres.replica
    return ServerCertificate(*crypto.generate_server_certificate(ca_key, ca_cert, replica.name, [replica.ip]))


def generate_secrets(config: InstallConfig, password_length: Optional[int] = None) -> GeneratedSecrets:
    """Generate every key, certificate and password the install config needs.

    Raises:
        crypto.CryptoError: If any piece cannot be generated
    """
    length = password_length or Config.PASSWORD_LENGTH
    generated = GeneratedSecrets()

    logger.info("Generating domain authentication keys...")
    generated.domain_auth_private_key, generated.domain_auth_public_key = crypto.generate_ecdsa_key_pair()

    logger.info("Generating ingress CA certificate...")
    generated.ingress_ca_key, generated.ingress_ca_cert = _generate_ca(INGRESS_CA_NAME)

    logger.info("Generating Ceph SSH keys...")
    generated.ceph_ssh_private_key, generated.ceph_ssh_public_key = crypto.generate_ssh_key_pair()

    postgres = config.postgres
    if postgres.mode == POSTGRES_MODE_INSTALL and postgres.primary is not None:
        logger.info("Generating PostgreSQL certificates and passwords...")
        generated.postgres_ca_key, generated.postgres_ca_cert = _generate_ca(POSTGRES_CA_NAME)
        generated.postgres_primary = issue_primary_certificate(
            config, generated.postgres_ca_key, generated.postgres_ca_cert)
        generated.postgres_admin_password = crypto.generate_password(length)
        if postgres.replica is not None:
            generated.postgres_replica = issue_replica_certificate(
                config, generated.postgres_ca_key, generated.postgres_ca_cert)
            generated.postgres_replica_password = crypto.generate_password(length)
        generated.postgres_user_passwords = {
            service: crypto.generate_password(length) for service in POSTGRES_SERVICES
        }

    return generated


def place_secrets(config: InstallConfig, generated: GeneratedSecrets) -> InstallConfig:
    """Copy generated material into the matching config fields, in place."""
    config.codesphere.domain_auth_private_key = generated.domain_auth_private_key
    config.codesphere.domain_auth_public_key = generated.domain_auth_public_key
    config.cluster.ingress_ca_key = generated.ingress_ca_key
    config.cluster.certificates.ca.cert_pem = generated.ingress_ca_cert
    config.ceph.ssh_private_key = generated.ceph_ssh_private_key
    config.ceph.ceph_adm_ssh_key.public_key = generated.ceph_ssh_public_key

    postgres = config.postgres
    if generated.postgres_ca_cert:
        postgres.ca_cert_private_key = generated.postgres_ca_key
        postgres.ca_cert_pem = generated.postgres_ca_cert
        postgres.admin_password = generated.postgres_admin_password
        postgres.user_passwords = dict(generated.postgres_user_passwords)
    if generated.postgres_primary is not None:
        postgres.primary.private_key = generated.postgres_primary.private_key
        postgres.primary.ssl_config.server_cert_pem = generated.postgres_primary.cert_pem
    if generated.postgres_replica is not None:
        postgres.replica.private_key = generated.postgres_replica.private_key
        postgres.replica.ssl_config.server_cert_pem = generated.postgres_replica.cert_pem
        postgres.replica_password = generated.postgres_replica_password
    return config
