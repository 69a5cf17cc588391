"""
Named presets for a fresh install config.

A profile is a table of field path -> default value. Applying a profile only
fills fields that are still empty, so explicit values always win and applying
the same profile twice changes nothing.
"""
import copy
import logging
from typing import Any, Dict, List, Tuple

from ..utils.fields import get_field, is_empty, set_field
from .models import GATEWAY_LOAD_BALANCER, POSTGRES_MODE_INSTALL, InstallConfig

logger = logging.getLogger("csctl.profiles")

ProfileTable = List[Tuple[str, Any]]


class ProfileError(ValueError):
    """Raised for an unknown profile name."""
    pass


# Settings no operator is asked about; filled in by every profile and by the collector.
STRUCTURAL_DEFAULTS: ProfileTable = [
    ("cluster.certificates.ca.algorithm", "RSA"),
    ("cluster.certificates.ca.key_size_bits", 2048),
    ("ceph.osds", [{
        "spec_id": "default",
        "placement": {"host_pattern": "*"},
        "data_devices": {"size": "240G:300G", "limit": 1},
        "db_devices": {"size": "120G:150G", "limit": 1},
    }]),
    ("codesphere.experiments", []),
    ("codesphere.deploy_config.images", {
        "ubuntu-24.04": {
            "name": "Ubuntu 24.04",
            "supported_until": "2028-05-31",
            "flavors": {
                "default": {
                    "image": {"bom_ref": "workspace-agent-24.04"},
                    "pool": {1: 1},
                },
            },
        },
    }),
    ("managed_service_backends", {"postgres": {}}),
]

BASELINE: ProfileTable = [
    ("data_center.id", 1),
    ("data_center.city", "Karlsruhe"),
    ("data_center.country_code", "DE"),
    ("secrets.base_dir", "/root/secrets"),
    ("postgres.mode", POSTGRES_MODE_INSTALL),
    ("kubernetes.managed_by_codesphere", True),
    ("cluster.gateway.service_type", GATEWAY_LOAD_BALANCER),
    ("cluster.public_gateway.service_type", GATEWAY_LOAD_BALANCER),
    ("codesphere.workspace_images", {"agent": {"bom_ref": "workspace-agent-24.04"}}),
    ("codesphere.plans.hosting_plans", {
        1: {"cpu_tenth": 10, "gpu_parts": 0, "memory_mb": 2048, "storage_mb": 20480, "temp_storage_mb": 1024},
    }),
    ("codesphere.plans.workspace_plans", {
        1: {"name": "Standard", "hosting_plan_id": 1, "max_replicas": 3, "on_demand": True},
    }),
] + STRUCTURAL_DEFAULTS

DEV: ProfileTable = [
    ("data_center.name", "dev"),
    ("postgres.primary.ip", "127.0.0.1"),
    ("postgres.primary.hostname", "localhost"),
    ("ceph.nodes_subnet", "127.0.0.1/32"),
    ("ceph.hosts", [{"hostname": "localhost", "ip_address": "127.0.0.1", "is_master": True}]),
    ("kubernetes.api_server_host", "127.0.0.1"),
    ("kubernetes.control_planes", [{"ip_address": "127.0.0.1"}]),
    ("kubernetes.workers", [{"ip_address": "127.0.0.1"}]),
    ("codesphere.domain", "codesphere.local"),
    ("codesphere.workspace_hosting_base_domain", "ws.local"),
    ("codesphere.custom_domains.c_name_base_domain", "custom.local"),
    ("codesphere.dns_servers", ["8.8.8.8", "1.1.1.1"]),
]

PROD: ProfileTable = [
    ("data_center.name", "production"),
    ("postgres.primary.ip", "10.50.0.2"),
    ("postgres.primary.hostname", "pg-primary"),
    ("postgres.replica.ip", "10.50.0.3"),
    ("postgres.replica.name", "replica1"),
    ("ceph.nodes_subnet", "10.53.101.0/24"),
    ("ceph.hosts", [
        {"hostname": "ceph-node-0", "ip_address": "10.53.101.2", "is_master": True},
        {"hostname": "ceph-node-1", "ip_address": "10.53.101.3", "is_master": False},
        {"hostname": "ceph-node-2", "ip_address": "10.53.101.4", "is_master": False},
    ]),
    ("kubernetes.api_server_host", "10.50.0.2"),
    ("kubernetes.control_planes", [{"ip_address": "10.50.0.2"}]),
    ("kubernetes.workers", [
        {"ip_address": "10.50.0.2"},
        {"ip_address": "10.50.0.3"},
        {"ip_address": "10.50.0.4"},
    ]),
    ("codesphere.domain", "codesphere.yourcompany.com"),
    ("codesphere.workspace_hosting_base_domain", "ws.yourcompany.com"),
    ("codesphere.custom_domains.c_name_base_domain", "custom.yourcompany.com"),
    ("codesphere.dns_servers", ["1.1.1.1", "8.8.8.8"]),
    ("codesphere.plans.workspace_plans", {
        1: {"name": "Standard Developer", "hosting_plan_id": 1, "max_replicas": 3, "on_demand": True},
    }),
]

MINIMAL: ProfileTable = [
    ("data_center.name", "minimal"),
    ("postgres.primary.ip", "127.0.0.1"),
    ("postgres.primary.hostname", "localhost"),
    ("ceph.nodes_subnet", "127.0.0.1/32"),
    ("ceph.hosts", [{"hostname": "localhost", "ip_address": "127.0.0.1", "is_master": True}]),
    ("kubernetes.api_server_host", "127.0.0.1"),
    ("kubernetes.control_planes", [{"ip_address": "127.0.0.1"}]),
    ("kubernetes.workers", []),
    ("codesphere.domain", "codesphere.local"),
    ("codesphere.workspace_hosting_base_domain", "ws.local"),
    ("codesphere.custom_domains.c_name_base_domain", "custom.local"),
    ("codesphere.dns_servers", ["8.8.8.8"]),
    ("codesphere.plans.workspace_plans", {
        1: {"name": "Standard Developer", "hosting_plan_id": 1, "max_replicas": 1, "on_demand": True},
    }),
]

PROFILES: Dict[str, Tuple[str, ProfileTable]] = {
    "dev": ("single-node development setup", DEV),
    "development": ("single-node development setup", DEV),
    "prod": ("multi-node production setup", PROD),
    "production": ("multi-node production setup", PROD),
    "minimal": ("minimal single-node setup", MINIMAL),
}


def fill_defaults(config: InstallConfig, table: ProfileTable) -> InstallConfig:
    """Set every empty field named in ``table`` on ``config`` in place."""
    for path, value in table:
        if is_empty(get_field(config, path)):
            set_field(config, path, copy.deepcopy(value))
    return config


def apply_profile(config: InstallConfig, name: str) -> InstallConfig:
    """Return a copy of ``config`` seeded with the named profile.

    Args:
        config: Document to seed; it is not modified
        name: Profile name, or "" for no profile

    Raises:
        ProfileError: If ``name`` is not a known profile
    """
    result = config.model_copy(deep=True) if config is not None else InstallConfig()
    if not name:
        return result
    if name not in PROFILES:
        raise ProfileError(f"unknown profile: {name}, available profiles: {', '.join(PROFILES)}")

    description, table = PROFILES[name]
    fill_defaults(result, table)
    fill_defaults(result, BASELINE)
    logger.info(f"Applied '{name}' profile: {description}")
    return result
