"""
Derive the k0s ClusterConfig document from an install config.

The document is generated from scratch on every call and never merged with a
previously written file.
"""
import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import InstallConfig, dump_yaml

logger = logging.getLogger("csctl.k0s")

K0S_API_VERSION = "k0s.k0sproject.io/v1beta1"
K0S_KIND = "ClusterConfig"
K0S_API_PORT = 6443
K0S_NETWORK_PROVIDER = "calico"
K0S_KONNECTIVITY_ADMIN_PORT = 8133
K0S_KONNECTIVITY_AGENT_PORT = 8132


class K0sModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class K0sMetadata(K0sModel):
    name: str


class K0sAPI(K0sModel):
    address: str = ""
    external_address: Optional[str] = Field(default=None, alias="externalAddress")
    sans: List[str] = Field(default_factory=list)
    port: int = K0S_API_PORT


class K0sNetwork(K0sModel):
    pod_cidr: Optional[str] = Field(default=None, alias="podCIDR")
    service_cidr: Optional[str] = Field(default=None, alias="serviceCIDR")
    provider: str = K0S_NETWORK_PROVIDER


class K0sEtcd(K0sModel):
    peer_address: str = Field(default="", alias="peerAddress")


class K0sStorage(K0sModel):
    type: str = "etcd"
    etcd: K0sEtcd = Field(default_factory=K0sEtcd)


class K0sImages(K0sModel):
    default_pull_policy: str = "Never"


class K0sTelemetry(K0sModel):
    enabled: bool = False


class K0sKonnectivity(K0sModel):
    admin_port: int = Field(default=K0S_KONNECTIVITY_ADMIN_PORT, alias="adminPort")
    agent_port: int = Field(default=K0S_KONNECTIVITY_AGENT_PORT, alias="agentPort")


class K0sSpec(K0sModel):
    api: K0sAPI = Field(default_factory=K0sAPI)
    network: K0sNetwork = Field(default_factory=K0sNetwork)
    storage: K0sStorage = Field(default_factory=K0sStorage)
    images: K0sImages = Field(default_factory=K0sImages)
    telemetry: K0sTelemetry = Field(default_factory=K0sTelemetry)
    konnectivity: K0sKonnectivity = Field(default_factory=K0sKonnectivity)


class K0sConfig(K0sModel):
    api_version: str = Field(default=K0S_API_VERSION, alias="apiVersion")
    kind: str = K0S_KIND
    metadata: K0sMetadata
    spec: K0sSpec = Field(default_factory=K0sSpec)

    def to_dict(self):
        return self.model_dump(by_alias=True, exclude_none=True)

    def marshal(self) -> bytes:
        return dump_yaml(self.to_dict())


def _unique(values: List[Optional[str]]) -> List[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def generate_k0s_config(config: Optional[InstallConfig]) -> K0sConfig:
    """Build the k0s ClusterConfig for ``config``.

    The API address and the etcd peer address are the first control plane IP.
    An empty control plane list is accepted and yields an empty address.

    Raises:
        ValueError: If ``config`` is None
    """
    if config is None:
        raise ValueError("install config is not set")

    k8s = config.kubernetes
    if not k8s.managed_by_codesphere:
        logger.warning("Kubernetes is not managed by Codesphere, the k0s config will not be used by the installer")

    control_planes = k8s.control_plane_ips()
    address = control_planes[0] if control_planes else ""
    if not address:
        logger.warning("No control plane nodes configured, the k0s API address is empty")

    return K0sConfig(
        metadata=K0sMetadata(name=f"codesphere-{config.data_center.name}"),
        spec=K0sSpec(
            api=K0sAPI(
                address=address,
                external_address=k8s.api_server_host or None,
                sans=_unique(control_planes + [k8s.api_server_host, config.codesphere.domain]),
            ),
            network=K0sNetwork(pod_cidr=k8s.pod_cidr, service_cidr=k8s.service_cidr),
            storage=K0sStorage(etcd=K0sEtcd(peer_address=address)),
        ),
    )
