"""
Semantic validation of the install config and vault documents.

Every check runs and every violation is reported; nothing stops at the first
problem.
"""
import ipaddress
import logging
from typing import List, Optional

from . import crypto
from .models import (
    GATEWAY_EXTERNAL_IP,
    GATEWAY_LOAD_BALANCER,
    POSTGRES_MODE_EXTERNAL,
    POSTGRES_MODE_INSTALL,
    InstallConfig,
    InstallVault,
)
from .vault import missing_required_entries

logger = logging.getLogger("csctl.validate")


class ConfigValidationError(Exception):
    """Carries every violation found in a document."""

    def __init__(self, errors: List[str], subject: str = "configuration"):
        self.errors = list(errors)
        super().__init__(f"{subject} validation failed: {', '.join(self.errors)}")


def is_valid_ip(value: Optional[str]) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def is_valid_cidr(value: Optional[str]) -> bool:
    try:
        ipaddress.ip_network(value, strict=False)
    except (ValueError, TypeError):
        return False
    return True


def _check_ip(errors: List[str], label: str, value: Optional[str]) -> None:
    if not is_valid_ip(value):
        errors.append(f"invalid {label}: {value}")


def _check_cidr(errors: List[str], label: str, value: Optional[str]) -> None:
    if value and not is_valid_cidr(value):
        errors.append(f"invalid {label}: {value}")


def _check_pem(errors: List[str], label: str, value: Optional[str]) -> None:
    if not value:
        return
    try:
        crypto.load_certificate(value)
    except crypto.CryptoError as e:
        errors.append(f"{label} is not a valid PEM certificate: {e}")


def _validate_postgres(config: InstallConfig, errors: List[str]) -> None:
    postgres = config.postgres
    if not postgres.mode:
        errors.append("postgres mode is required (install or external)")
    elif postgres.mode not in (POSTGRES_MODE_INSTALL, POSTGRES_MODE_EXTERNAL):
        errors.append(f"invalid postgres mode: {postgres.mode} (must be 'install' or 'external')")

    if postgres.mode == POSTGRES_MODE_INSTALL:
        if postgres.primary is None:
            errors.append("postgres primary configuration is required when mode is 'install'")
        else:
            if not postgres.primary.ip:
                errors.append("postgres primary IP is required")
            else:
                _check_ip(errors, "postgres primary IP", postgres.primary.ip)
            if not postgres.primary.hostname:
                errors.append("postgres primary hostname is required")
        if postgres.replica is not None:
            _check_ip(errors, "postgres replica IP", postgres.replica.ip)
            if not postgres.replica.name:
                errors.append("postgres replica name is required")
        if postgres.server_address:
            errors.append("postgres server address must not be set when mode is 'install'")
    elif postgres.mode == POSTGRES_MODE_EXTERNAL:
        if not postgres.server_address:
            errors.append("postgres server address is required when mode is 'external'")
        if postgres.primary is not None or postgres.replica is not None:
            errors.append("postgres primary/replica must not be set when mode is 'external'")

    _check_pem(errors, "postgres CA certificate", postgres.ca_cert_pem)


def _validate_ceph(config: InstallConfig, errors: List[str]) -> None:
    ceph = config.ceph
    _check_cidr(errors, "Ceph nodes subnet", ceph.nodes_subnet)
    if not ceph.hosts:
        errors.append("at least one Ceph host is required")
    for host in ceph.hosts:
        if not host.hostname:
            errors.append(f"Ceph host {host.ip_address} has no hostname")
        _check_ip(errors, "Ceph host IP", host.ip_address)
    if ceph.hosts and sum(1 for host in ceph.hosts if host.is_master) != 1:
        errors.append("exactly one Ceph host must be marked as master")


def _validate_kubernetes(config: InstallConfig, errors: List[str]) -> None:
    k8s = config.kubernetes
    if k8s.managed_by_codesphere:
        if not k8s.control_planes:
            errors.append("at least one K8s control plane node is required")
        for ip in k8s.control_plane_ips():
            _check_ip(errors, "K8s control plane IP", ip)
        for ip in k8s.worker_ips():
            _check_ip(errors, "K8s worker IP", ip)
    else:
        if not k8s.pod_cidr:
            errors.append("pod CIDR is required for external Kubernetes")
        if not k8s.service_cidr:
            errors.append("service CIDR is required for external Kubernetes")
    _check_cidr(errors, "pod CIDR", k8s.pod_cidr)
    _check_cidr(errors, "service CIDR", k8s.service_cidr)


def _validate_cluster(config: InstallConfig, errors: List[str]) -> None:
    cluster = config.cluster
    for label, gateway in (("gateway", cluster.gateway), ("public gateway", cluster.public_gateway)):
        if gateway.service_type not in (GATEWAY_LOAD_BALANCER, GATEWAY_EXTERNAL_IP):
            errors.append(f"invalid {label} service type: {gateway.service_type}")
        if gateway.service_type == GATEWAY_EXTERNAL_IP and not gateway.ip_addresses:
            errors.append(f"{label} IP addresses are required for service type {GATEWAY_EXTERNAL_IP}")
        for ip in gateway.ip_addresses or []:
            _check_ip(errors, f"{label} IP", ip)

    _check_pem(errors, "cluster CA certificate", cluster.certificates.ca.cert_pem)

    acme = cluster.certificates.acme
    if acme is not None and acme.enabled:
        if not acme.email:
            errors.append("ACME email is required when ACME is enabled")
        if not acme.server:
            errors.append("ACME server is required when ACME is enabled")

    if config.metallb is not None and config.metallb.enabled:
        if not config.metallb.pools:
            errors.append("at least one MetalLB pool is required when MetalLB is enabled")
        for pool in config.metallb.pools:
            if not pool.name or not pool.ip_addresses:
                errors.append(f"MetalLB pool '{pool.name}' needs a name and IP addresses")


def _validate_codesphere(config: InstallConfig, errors: List[str]) -> None:
    codesphere = config.codesphere
    if not codesphere.domain:
        errors.append("Codesphere domain is required")
    if codesphere.public_ip:
        _check_ip(errors, "Codesphere public IP", codesphere.public_ip)
    for server in codesphere.dns_servers:
        _check_ip(errors, "DNS server", server)

    hosting_plans = codesphere.plans.hosting_plans
    for plan_id, plan in codesphere.plans.workspace_plans.items():
        if plan.hosting_plan_id not in hosting_plans:
            errors.append(f"workspace plan {plan_id} references unknown hosting plan {plan.hosting_plan_id}")


def validate_install_config(config: Optional[InstallConfig]) -> List[str]:
    """Return every violation found in ``config``; an empty list means valid."""
    if config is None:
        return ["config not set, cannot validate"]

    errors: List[str] = []
    if not config.data_center.id:
        errors.append("datacenter ID is required")
    if not config.data_center.name:
        errors.append("datacenter name is required")

    _validate_postgres(config, errors)
    _validate_ceph(config, errors)
    _validate_kubernetes(config, errors)
    _validate_cluster(config, errors)
    _validate_codesphere(config, errors)

    if errors:
        logger.debug(f"Install config has {len(errors)} violation(s)")
    return errors


def validate_vault(vault: Optional[InstallVault]) -> List[str]:
    if vault is None:
        return ["vault not set, cannot validate"]
    return [f"required secret missing: {name}" for name in missing_required_entries(vault)]


def _check_server_certificate(errors: List[str], label: str, ca_cert: str, cert_pem: str,
                              private_key: str, ip: str) -> None:
    if not cert_pem:
        errors.append(f"{label} server certificate is missing")
        return
    try:
        sans = crypto.certificate_ip_addresses(cert_pem)
        expected = [str(ipaddress.ip_address(ip))] if is_valid_ip(ip) else []
        if sans != expected:
            errors.append(f"{label} server certificate is issued for {sans}, expected {expected}")
        crypto.verify_issued_by(cert_pem, ca_cert)
        if private_key and not crypto.key_matches_certificate(private_key, cert_pem):
            errors.append(f"{label} private key does not match its server certificate")
    except crypto.CryptoError as e:
        errors.append(f"{label} server certificate: {e}")


def validate_certificates(config: InstallConfig) -> List[str]:
    """Check that issued certificates still attest to the current config.

    Server certificates must list exactly the IP of the node they were issued
    for and chain to the PostgreSQL CA.
    """
    errors: List[str] = []
    if not config.cluster.certificates.ca.cert_pem:
        errors.append("cluster CA certificate is missing")
    else:
        _check_pem(errors, "cluster CA certificate", config.cluster.certificates.ca.cert_pem)

    postgres = config.postgres
    if postgres.mode != POSTGRES_MODE_INSTALL or postgres.primary is None:
        return errors
    if not postgres.ca_cert_pem:
        errors.append("postgres CA certificate is missing")
        return errors

    _check_server_certificate(errors, "postgres primary", postgres.ca_cert_pem,
                              postgres.primary.ssl_config.server_cert_pem,
                              postgres.primary.private_key, postgres.primary.ip)
    if postgres.replica is not None:
        _check_server_certificate(errors, "postgres replica", postgres.ca_cert_pem,
                                  postgres.replica.ssl_config.server_cert_pem,
                                  postgres.replica.private_key, postgres.replica.ip)
    return errors
