from csctl.modules import crypto
from csctl.modules.models import InstallConfig, InstallVault, SecretEntry
from csctl.modules.validate import (
    ConfigValidationError,
    is_valid_cidr,
    is_valid_ip,
    validate_certificates,
    validate_install_config,
    validate_vault,
)


def test_generated_config_is_valid(prod_config):
    assert validate_install_config(prod_config) == []
    assert validate_certificates(prod_config) == []


def test_reports_every_violation(prod_config):
    prod_config.codesphere.domain = ""
    prod_config.ceph.hosts[1].ip_address = "999.1.1.1"

    errors = validate_install_config(prod_config)
    assert "Codesphere domain is required" in errors
    assert "invalid Ceph host IP: 999.1.1.1" in errors
    assert len(errors) == 2


def test_postgres_mode_rules(prod_config):
    prod_config.postgres.server_address = "db.example.com:5432"
    assert "postgres server address must not be set when mode is 'install'" in validate_install_config(prod_config)

    prod_config.postgres.mode = "external"
    errors = validate_install_config(prod_config)
    assert "postgres primary/replica must not be set when mode is 'external'" in errors

    prod_config.postgres.primary = None
    prod_config.postgres.replica = None
    assert validate_install_config(prod_config) == []

    prod_config.postgres.mode = "cloud"
    assert any("invalid postgres mode" in error for error in validate_install_config(prod_config))


def test_ceph_needs_exactly_one_master(prod_config):
    for host in prod_config.ceph.hosts:
        host.is_master = True
    assert "exactly one Ceph host must be marked as master" in validate_install_config(prod_config)


def test_external_kubernetes_needs_cidrs(prod_config):
    prod_config.kubernetes.managed_by_codesphere = False
    errors = validate_install_config(prod_config)
    assert "pod CIDR is required for external Kubernetes" in errors
    assert "service CIDR is required for external Kubernetes" in errors

    prod_config.kubernetes.pod_cidr = "100.96.0.0/11"
    prod_config.kubernetes.service_cidr = "not-a-cidr"
    assert validate_install_config(prod_config) == ["invalid service CIDR: not-a-cidr"]


def test_gateway_and_plan_references(prod_config):
    prod_config.cluster.gateway.service_type = "ExternalIP"
    prod_config.codesphere.plans.workspace_plans[1].hosting_plan_id = 7

    errors = validate_install_config(prod_config)
    assert "gateway IP addresses are required for service type ExternalIP" in errors
    assert "workspace plan 1 references unknown hosting plan 7" in errors


def test_empty_config_and_none():
    assert validate_install_config(None) == ["config not set, cannot validate"]
    errors = validate_install_config(InstallConfig())
    assert "datacenter ID is required" in errors
    assert "at least one Ceph host is required" in errors


def test_certificate_must_match_current_ip(prod_config):
    prod_config.postgres.primary.ip = "10.50.0.99"
    errors = validate_certificates(prod_config)
    assert errors == ["postgres primary server certificate is issued for ['10.50.0.2'], expected ['10.50.0.99']"]


def test_certificate_from_foreign_ca_is_reported(prod_config):
    other_key, other_cert = crypto.generate_ca("Other CA", "DE", "Berlin", "Someone")
    key, cert = crypto.generate_server_certificate(other_key, other_cert, "pg-primary", ["10.50.0.2"])
    prod_config.postgres.primary.private_key = key
    prod_config.postgres.primary.ssl_config.server_cert_pem = cert

    errors = validate_certificates(prod_config)
    assert len(errors) == 1
    assert "not issued by the CA" in errors[0]


def test_mismatched_private_key_is_reported(prod_config):
    prod_config.postgres.primary.private_key = prod_config.postgres.replica.private_key
    assert validate_certificates(prod_config) == ["postgres primary private key does not match its server certificate"]


def test_validate_vault():
    assert validate_vault(None) == ["vault not set, cannot validate"]
    vault = InstallVault(secrets=[SecretEntry.password(name, "x") for name in (
        "cephSshPrivateKey", "selfSignedCaKeyPem", "domainAuthPrivateKey")])
    assert validate_vault(vault) == ["required secret missing: domainAuthPublicKey"]


def test_ip_and_cidr_helpers():
    assert is_valid_ip("10.0.0.1")
    assert is_valid_ip("::1")
    assert not is_valid_ip("10.0.0")
    assert not is_valid_ip(None)
    assert is_valid_cidr("10.0.0.0/8")
    assert not is_valid_cidr("10.0.0.0/33")


def test_validation_error_message():
    error = ConfigValidationError(["a", "b"], "vault")
    assert str(error) == "vault validation failed: a, b"
    assert error.errors == ["a", "b"]
