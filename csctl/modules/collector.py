"""
Fill the empty parts of an install config from caller overrides or prompts.

A field that already holds a value is never asked about. Otherwise the caller
supplied override wins, and only then the operator is prompted with a default
(or the default is taken as is when running non-interactively).
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..utils import display_value
from ..utils.fields import get_field, is_empty, set_field
from .models import (
    GATEWAY_EXTERNAL_IP,
    GATEWAY_LOAD_BALANCER,
    POSTGRES_MODE_EXTERNAL,
    POSTGRES_MODE_INSTALL,
    ACMEConfig,
    InstallConfig,
    MetalLBConfig,
    RegistryConfig,
)
from .profiles import STRUCTURAL_DEFAULTS, fill_defaults
from .prompt import Prompter

logger = logging.getLogger("csctl.collector")

DEFAULT_ACME_SERVER = "https://acme-v02.api.letsencrypt.org/directory"
DNS01_PROVIDERS = ["route53", "cloudflare", "azure", "gcp", "other"]


@dataclass
class InstallOptions:
    """Values supplied up front by the caller. ``None`` means not supplied."""
    datacenter_id: Optional[int] = None
    datacenter_name: Optional[str] = None
    datacenter_city: Optional[str] = None
    datacenter_country_code: Optional[str] = None
    secrets_base_dir: Optional[str] = None

    registry_server: Optional[str] = None
    registry_replace_images: Optional[bool] = None
    registry_load_container_images: Optional[bool] = None

    postgres_mode: Optional[str] = None
    postgres_primary_ip: Optional[str] = None
    postgres_primary_hostname: Optional[str] = None
    postgres_replica_ip: Optional[str] = None
    postgres_replica_name: Optional[str] = None
    postgres_server_address: Optional[str] = None

    ceph_subnet: Optional[str] = None
    ceph_hosts: Optional[List[Dict[str, Any]]] = None

    k8s_managed: Optional[bool] = None
    k8s_api_server: Optional[str] = None
    k8s_control_planes: Optional[List[str]] = None
    k8s_workers: Optional[List[str]] = None
    k8s_pod_cidr: Optional[str] = None
    k8s_service_cidr: Optional[str] = None

    gateway_type: Optional[str] = None
    gateway_ips: Optional[List[str]] = None
    public_gateway_type: Optional[str] = None
    public_gateway_ips: Optional[List[str]] = None

    metallb_enabled: Optional[bool] = None
    metallb_pools: Optional[List[Dict[str, Any]]] = None

    acme_enabled: Optional[bool] = None
    acme_issuer_name: Optional[str] = None
    acme_email: Optional[str] = None
    acme_server: Optional[str] = None
    acme_eab_key_id: Optional[str] = None
    acme_eab_mac_key: Optional[str] = None
    acme_dns01_provider: Optional[str] = None

    domain: Optional[str] = None
    workspace_base_domain: Optional[str] = None
    public_ip: Optional[str] = None
    custom_domain_base_domain: Optional[str] = None
    dns_servers: Optional[List[str]] = None

    workspace_image_bom_ref: Optional[str] = None
    hosting_plan_cpu: Optional[int] = None
    hosting_plan_memory: Optional[int] = None
    hosting_plan_storage: Optional[int] = None
    hosting_plan_temp_storage: Optional[int] = None
    workspace_plan_name: Optional[str] = None
    workspace_plan_max_replicas: Optional[int] = None


def _nodes(ips: Optional[List[str]]) -> Optional[List[Dict[str, str]]]:
    if ips is None:
        return None
    return [{"ip_address": ip} for ip in ips]


class ConfigCollector:
    """Walks every section of an install config and fills what is missing."""

    def __init__(self, prompter: Prompter):
        self.prompter = prompter

    def collect(self, config: InstallConfig, options: Optional[InstallOptions] = None) -> InstallConfig:
        """Return a copy of ``config`` with every section populated."""
        result = config.model_copy(deep=True) if config is not None else InstallConfig()
        options = options or InstallOptions()

        self._collect_datacenter(result, options)
        self._collect_registry(result, options)
        self._collect_postgres(result, options)
        self._collect_ceph(result, options)
        self._collect_kubernetes(result, options)
        self._collect_gateways(result, options)
        self._collect_metallb(result, options)
        self._collect_acme(result, options)
        self._collect_codesphere(result, options)
        self._collect_plans(result, options)
        fill_defaults(result, STRUCTURAL_DEFAULTS)
        return result

    def _field(self, config: InstallConfig, path: str, override: Any, ask: Callable[[], Any]) -> Any:
        current = get_field(config, path)
        if not is_empty(current):
            return current
        value = override if not is_empty(override) else ask()
        if not is_empty(value):
            set_field(config, path, value)
            logger.debug(f"Collected {path} = {display_value(path, value)}")
        return get_field(config, path)

    def _collect_datacenter(self, config: InstallConfig, options: InstallOptions) -> None:
        p = self.prompter
        p.section("Datacenter Configuration")
        self._field(config, "data_center.id", options.datacenter_id, lambda: p.integer("Datacenter ID", 1))
        self._field(config, "data_center.name", options.datacenter_name, lambda: p.string("Datacenter name", "main"))
        self._field(config, "data_center.city", options.datacenter_city, lambda: p.string("Datacenter city", "Karlsruhe"))
        self._field(config, "data_center.country_code", options.datacenter_country_code,
                    lambda: p.string("Country code", "DE"))
        self._field(config, "secrets.base_dir", options.secrets_base_dir,
                    lambda: p.string("Secrets base directory", "/root/secrets"))

    def _collect_registry(self, config: InstallConfig, options: InstallOptions) -> None:
        p = self.prompter
        p.section("Container Registry Configuration")
        if config.registry is not None and config.registry.server:
            return
        server = options.registry_server or p.string(
            "Container registry server (e.g. ghcr.io, leave empty to skip)", "")
        if not server:
            return

        replace_images = options.registry_replace_images
        if replace_images is None:
            replace_images = p.confirm("Replace images in BOM", True)
        load_images = options.registry_load_container_images
        if load_images is None:
            load_images = p.confirm("Load container images from installer", False)
        config.registry = RegistryConfig(
            server=server,
            replace_images_in_bom=replace_images,
            load_container_images=load_images,
        )

    def _collect_postgres(self, config: InstallConfig, options: InstallOptions) -> None:
        p = self.prompter
        p.section("PostgreSQL Configuration")
        mode = self._field(config, "postgres.mode", options.postgres_mode, lambda: p.choice(
            "PostgreSQL setup", [POSTGRES_MODE_INSTALL, POSTGRES_MODE_EXTERNAL], POSTGRES_MODE_INSTALL))

        if mode != POSTGRES_MODE_INSTALL:
            self._field(config, "postgres.server_address", options.postgres_server_address,
                        lambda: p.string("External PostgreSQL server address", "postgres.example.com:5432"))
            return

        self._field(config, "postgres.primary.ip", options.postgres_primary_ip,
                    lambda: p.string("Primary PostgreSQL server IP", "10.50.0.2"))
        self._field(config, "postgres.primary.hostname", options.postgres_primary_hostname,
                    lambda: p.string("Primary PostgreSQL hostname", "pg-primary-node"))

        if is_empty(config.postgres.replica):
            wanted = bool(options.postgres_replica_ip or options.postgres_replica_name)
            if not wanted and p.interactive:
                wanted = p.confirm("Configure PostgreSQL replica", True)
            if not wanted:
                config.postgres.replica = None
                return
        self._field(config, "postgres.replica.ip", options.postgres_replica_ip,
                    lambda: p.string("Replica PostgreSQL server IP", "10.50.0.3"))
        self._field(config, "postgres.replica.name", options.postgres_replica_name,
                    lambda: p.string("Replica name (lowercase alphanumeric + underscore only)", "replica1"))

    def _collect_ceph(self, config: InstallConfig, options: InstallOptions) -> None:
        p = self.prompter
        p.section("Ceph Configuration")
        self._field(config, "ceph.nodes_subnet", options.ceph_subnet,
                    lambda: p.string("Ceph nodes subnet (CIDR)", "10.53.101.0/24"))
        self._field(config, "ceph.hosts", options.ceph_hosts, self._ask_ceph_hosts)

    def _ask_ceph_hosts(self) -> List[Dict[str, Any]]:
        p = self.prompter
        hosts = []
        for i in range(p.integer("Number of Ceph hosts", 3)):
            hosts.append({
                "hostname": p.string(f"Ceph host {i + 1} hostname (as shown by 'hostname')", f"ceph-node-{i}"),
                "ip_address": p.string(f"Ceph host {i + 1} IP address", f"10.53.101.{i + 2}"),
                "is_master": i == 0,
            })
        return hosts

    def _collect_kubernetes(self, config: InstallConfig, options: InstallOptions) -> None:
        p = self.prompter
        p.section("Kubernetes Configuration")
        k8s = config.kubernetes
        if not k8s.managed_by_codesphere:
            managed = options.k8s_managed
            if managed is None:
                managed = p.confirm("Use Codesphere-managed Kubernetes (k0s)", True)
            k8s.managed_by_codesphere = managed

        if k8s.managed_by_codesphere:
            self._field(config, "kubernetes.api_server_host", options.k8s_api_server,
                        lambda: p.string("Kubernetes API server host (LB/DNS/IP)", "10.50.0.2"))
            self._field(config, "kubernetes.control_planes", _nodes(options.k8s_control_planes),
                        lambda: _nodes(p.string_list("Control plane IP addresses", ["10.50.0.2"])))
            self._field(config, "kubernetes.workers", _nodes(options.k8s_workers),
                        lambda: _nodes(p.string_list("Worker node IP addresses",
                                                     ["10.50.0.2", "10.50.0.3", "10.50.0.4"])))
            return

        self._field(config, "kubernetes.pod_cidr", options.k8s_pod_cidr,
                    lambda: p.string("Pod CIDR of external cluster", "100.96.0.0/11"))
        self._field(config, "kubernetes.service_cidr", options.k8s_service_cidr,
                    lambda: p.string("Service CIDR of external cluster", "100.64.0.0/13"))
        logger.info("External Kubernetes: provide the kubeconfig in the vault file")

    def _collect_gateways(self, config: InstallConfig, options: InstallOptions) -> None:
        p = self.prompter
        p.section("Cluster Gateway Configuration")
        gateways = [
            ("gateway", "Gateway", options.gateway_type, options.gateway_ips, ["10.51.0.2", "10.51.0.3"]),
            ("public_gateway", "Public gateway", options.public_gateway_type, options.public_gateway_ips,
             ["10.52.0.2", "10.52.0.3"]),
        ]
        for name, label, type_override, ips_override, default_ips in gateways:
            service_type = self._field(config, f"cluster.{name}.service_type", type_override, lambda: p.choice(
                f"{label} service type", [GATEWAY_LOAD_BALANCER, GATEWAY_EXTERNAL_IP], GATEWAY_LOAD_BALANCER))
            if service_type == GATEWAY_EXTERNAL_IP:
                self._field(config, f"cluster.{name}.ip_addresses", ips_override,
                            lambda: p.string_list(f"{label} IP addresses", default_ips))
            elif ips_override:
                self._field(config, f"cluster.{name}.ip_addresses", ips_override, list)

    def _collect_metallb(self, config: InstallConfig, options: InstallOptions) -> None:
        p = self.prompter
        p.section("MetalLB Configuration (Optional)")
        if not is_empty(config.metallb):
            return
        enabled = options.metallb_enabled
        if enabled is None:
            enabled = p.confirm("Enable MetalLB", False)
        if not enabled:
            return

        pools = options.metallb_pools
        if not pools:
            pools = [
                {
                    "name": p.string(f"MetalLB pool {i + 1} name", f"pool-{i + 1}"),
                    "ip_addresses": p.string_list(f"MetalLB pool {i + 1} IP addresses/ranges",
                                                  ["10.10.10.100-10.10.10.200"]),
                }
                for i in range(p.integer("Number of MetalLB IP pools", 1))
            ]
        config.metallb = MetalLBConfig(enabled=True, pools=pools)

    def _collect_acme(self, config: InstallConfig, options: InstallOptions) -> None:
        p = self.prompter
        p.section("ACME Certificate Configuration (Optional)")
        certificates = config.cluster.certificates
        if certificates.acme is not None and certificates.acme.enabled:
            return
        enabled = options.acme_enabled
        if enabled is None:
            enabled = p.confirm("Enable ACME certificate issuer (e.g. Let's Encrypt)", False)
        if not enabled:
            return

        if certificates.acme is None:
            certificates.acme = ACMEConfig()
        certificates.acme.enabled = True
        self._field(config, "cluster.certificates.acme.name", options.acme_issuer_name,
                    lambda: p.string("ACME issuer name", "acme-issuer"))
        self._field(config, "cluster.certificates.acme.email", options.acme_email,
                    lambda: p.string("Email address for ACME account registration", "admin@example.com"))
        self._field(config, "cluster.certificates.acme.server", options.acme_server,
                    lambda: p.string("ACME server URL", DEFAULT_ACME_SERVER))

        acme = certificates.acme
        if not acme.eab_key_id:
            if options.acme_eab_key_id:
                acme.eab_key_id = options.acme_eab_key_id
                acme.eab_mac_key = options.acme_eab_mac_key or ""
            elif p.confirm("Configure External Account Binding (required by some ACME CAs)", False):
                acme.eab_key_id = p.string("EAB key ID")
                acme.eab_mac_key = p.string("EAB MAC key")

        if acme.solver.dns01 is None:
            provider = options.acme_dns01_provider
            if not provider and p.confirm("Configure DNS-01 challenge solver", False):
                provider = p.choice("DNS provider", DNS01_PROVIDERS, "cloudflare")
            if provider:
                set_field(config, "cluster.certificates.acme.solver.dns01.provider", provider)
                logger.info("DNS-01 provider config and secrets must be added to the vault file manually")

    def _collect_codesphere(self, config: InstallConfig, options: InstallOptions) -> None:
        p = self.prompter
        p.section("Codesphere Application Configuration")
        self._field(config, "codesphere.domain", options.domain,
                    lambda: p.string("Main Codesphere domain", "codesphere.yourcompany.com"))
        self._field(config, "codesphere.workspace_hosting_base_domain", options.workspace_base_domain,
                    lambda: p.string("Workspace base domain (*.domain should point to public gateway)",
                                     "ws.yourcompany.com"))
        self._field(config, "codesphere.public_ip", options.public_ip,
                    lambda: p.string("Primary public IP for workspaces", ""))
        self._field(config, "codesphere.custom_domains.c_name_base_domain", options.custom_domain_base_domain,
                    lambda: p.string("Custom domain CNAME base", "custom.yourcompany.com"))
        self._field(config, "codesphere.dns_servers", options.dns_servers,
                    lambda: p.string_list("DNS servers", ["1.1.1.1", "8.8.8.8"]))
        self._field(config, "codesphere.workspace_images.agent.bom_ref", options.workspace_image_bom_ref,
                    lambda: p.string("Workspace agent image BOM reference", "workspace-agent-24.04"))

    def _collect_plans(self, config: InstallConfig, options: InstallOptions) -> None:
        p = self.prompter
        p.section("Workspace Plans Configuration")
        plans = config.codesphere.plans

        if not plans.hosting_plans:
            def value(override: Optional[int], prompt: str, default: int) -> int:
                return override if override else p.integer(prompt, default)

            plans.hosting_plans = {1: {
                "cpu_tenth": value(options.hosting_plan_cpu, "Hosting plan CPU (tenths, e.g. 10 = 1 core)", 10),
                "memory_mb": value(options.hosting_plan_memory, "Hosting plan memory (MB)", 2048),
                "storage_mb": value(options.hosting_plan_storage, "Hosting plan storage (MB)", 20480),
                "temp_storage_mb": value(options.hosting_plan_temp_storage, "Hosting plan temp storage (MB)", 1024),
            }}

        if not plans.workspace_plans:
            name = options.workspace_plan_name or p.string("Workspace plan name", "Standard Developer")
            max_replicas = options.workspace_plan_max_replicas or p.integer("Max replicas per workspace", 3)
            plans.workspace_plans = {1: {
                "name": name,
                "hosting_plan_id": min(plans.hosting_plans),
                "max_replicas": max_replicas,
                "on_demand": True,
            }}
