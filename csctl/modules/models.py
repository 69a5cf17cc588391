"""Data models for the install config and vault documents.

Both documents are YAML files. Field names follow python conventions and are
mapped onto the camelCase keys of the files through aliases. Secret material
lives on the install config models too, but in fields excluded from
serialization: it only ever reaches disk through the vault document.
"""
import logging
from typing import Any, Dict, List, Optional, Union

import yaml
from jsonschema import validate as validate_schema, ValidationError as SchemaValidationError
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_serializer,
    model_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger("csctl.models")

POSTGRES_MODE_INSTALL = "install"
POSTGRES_MODE_EXTERNAL = "external"

GATEWAY_LOAD_BALANCER = "LoadBalancer"
GATEWAY_EXTERNAL_IP = "ExternalIP"


class DocumentError(Exception):
    """Raised when a config or vault document cannot be parsed."""
    pass


class Document(BaseModel):
    """Base for every document node: camelCase aliases, unknown keys preserved."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        validate_assignment=True,
    )


def _secret(default: Any = "") -> Any:
    """A field that is kept in memory but never written to the config file."""
    if isinstance(default, dict):
        return Field(default_factory=dict, exclude=True)
    return Field(default=default, exclude=True)


class _BlockDumper(yaml.SafeDumper):
    """Dumper that writes multi-line strings (PEM blocks) as literal blocks."""
    pass


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_str(data)


_BlockDumper.add_representer(str, _represent_str)


def dump_yaml(data: Any) -> bytes:
    return yaml.dump(
        data,
        Dumper=_BlockDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    ).encode("utf-8")


def load_yaml(data: Union[bytes, str], source: str) -> Dict[str, Any]:
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise DocumentError(f"failed to parse {source}: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise DocumentError(f"failed to parse {source}: expected a mapping at the top level")
    return raw


def _describe(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


# ---------------------------------------------------------------------------
# Install config
# ---------------------------------------------------------------------------

class DatacenterConfig(Document):
    id: int = 0
    name: str = ""
    city: str = ""
    country_code: str = ""


class SecretsConfig(Document):
    base_dir: str = ""


class RegistryConfig(Document):
    server: str = ""
    replace_images_in_bom: bool = False
    load_container_images: bool = False

    username: str = _secret()
    password: str = _secret()


class SSLConfig(Document):
    server_cert_pem: str = ""


class PostgresPrimaryConfig(Document):
    ssl_config: SSLConfig = Field(default_factory=SSLConfig)
    ip: str = ""
    hostname: str = ""

    private_key: str = _secret()


class PostgresReplicaConfig(Document):
    ip: str = ""
    name: str = ""
    ssl_config: SSLConfig = Field(default_factory=SSLConfig)

    private_key: str = _secret()


class PostgresConfig(Document):
    mode: Optional[str] = None
    ca_cert_pem: Optional[str] = None
    primary: Optional[PostgresPrimaryConfig] = None
    replica: Optional[PostgresReplicaConfig] = None
    server_address: Optional[str] = None

    ca_cert_private_key: str = _secret()
    admin_password: str = _secret()
    replica_password: str = _secret()
    user_passwords: Dict[str, str] = _secret({})


class CephSSHKey(Document):
    public_key: str = ""


class CephHost(Document):
    hostname: str = ""
    ip_address: str = ""
    is_master: bool = False


class CephPlacement(Document):
    host_pattern: str = Field(default="", alias="host_pattern")


class CephDevices(Document):
    size: str = ""
    limit: int = 0


class CephOSD(Document):
    spec_id: str = ""
    placement: CephPlacement = Field(default_factory=CephPlacement)
    data_devices: CephDevices = Field(default_factory=CephDevices)
    db_devices: CephDevices = Field(default_factory=CephDevices)


class CephConfig(Document):
    csi_kubelet_dir: Optional[str] = None
    ceph_adm_ssh_key: CephSSHKey = Field(default_factory=CephSSHKey)
    nodes_subnet: str = ""
    hosts: List[CephHost] = Field(default_factory=list)
    osds: List[CephOSD] = Field(default_factory=list)

    ssh_private_key: str = _secret()


class K8sNode(Document):
    ip_address: str = ""


class KubernetesConfig(Document):
    managed_by_codesphere: bool = False
    api_server_host: Optional[str] = None
    control_planes: Optional[List[K8sNode]] = None
    workers: Optional[List[K8sNode]] = None
    pod_cidr: Optional[str] = None
    service_cidr: Optional[str] = None

    @property
    def needs_kube_config(self) -> bool:
        """External clusters are reached through a kubeconfig kept in the vault."""
        return not self.managed_by_codesphere

    def control_plane_ips(self) -> List[str]:
        return [node.ip_address for node in self.control_planes or []]

    def worker_ips(self) -> List[str]:
        return [node.ip_address for node in self.workers or []]


class CAConfig(Document):
    algorithm: str = ""
    key_size_bits: int = 0
    cert_pem: str = ""


class ACMEDNS01Solver(Document):
    provider: str = ""
    provider_config: Optional[Dict[str, Any]] = Field(default=None, alias="config")

    secrets: Dict[str, str] = _secret({})


class ACMESolver(Document):
    dns01: Optional[ACMEDNS01Solver] = None


class ACMEConfig(Document):
    enabled: bool = False
    name: Optional[str] = None
    email: Optional[str] = None
    server: Optional[str] = None
    solver: ACMESolver = Field(default_factory=ACMESolver)

    eab_key_id: str = _secret()
    eab_mac_key: str = _secret()


class ClusterCertificates(Document):
    ca: CAConfig = Field(default_factory=CAConfig)
    acme: Optional[ACMEConfig] = None


class GatewayConfig(Document):
    service_type: str = ""
    annotations: Optional[Dict[str, str]] = None
    ip_addresses: Optional[List[str]] = None


class ClusterConfig(Document):
    certificates: ClusterCertificates = Field(default_factory=ClusterCertificates)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    public_gateway: GatewayConfig = Field(default_factory=GatewayConfig)

    ingress_ca_key: str = _secret()


class MetalLBPool(Document):
    name: str = ""
    ip_addresses: List[str] = Field(default_factory=list)


class MetalLBConfig(Document):
    enabled: bool = False
    pools: List[MetalLBPool] = Field(default_factory=list)


class CustomDomainsConfig(Document):
    c_name_base_domain: str = ""


class ImageRef(Document):
    """Image reference: either a BOM reference/Dockerfile or a plain image name."""
    bom_ref: Optional[str] = None
    dockerfile: Optional[str] = None

    image_name: str = _secret()

    @model_validator(mode="before")
    @classmethod
    def _plain_image_name(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"image_name": data}
        return data

    @model_serializer(mode="wrap")
    def _serialize(self, handler):
        if self.image_name:
            return self.image_name
        return handler(self)

    def reference(self) -> str:
        return self.image_name or self.bom_ref or ""


class WorkspaceImagesConfig(Document):
    agent: Optional[ImageRef] = None
    agent_gpu: Optional[ImageRef] = None
    server: Optional[ImageRef] = None
    vpn: Optional[ImageRef] = None


class FlavorConfig(Document):
    image: ImageRef = Field(default_factory=ImageRef)
    pool: Dict[int, int] = Field(default_factory=dict)


class ImageConfig(Document):
    name: str = ""
    supported_until: str = ""
    flavors: Dict[str, FlavorConfig] = Field(default_factory=dict)


class DeployConfig(Document):
    images: Dict[str, ImageConfig] = Field(default_factory=dict)


class HostingPlan(Document):
    cpu_tenth: int = 0
    gpu_parts: int = 0
    memory_mb: int = 0
    storage_mb: int = 0
    temp_storage_mb: int = 0


class WorkspacePlan(Document):
    name: str = ""
    hosting_plan_id: int = 0
    max_replicas: int = 0
    on_demand: bool = False


class PlansConfig(Document):
    hosting_plans: Dict[int, HostingPlan] = Field(default_factory=dict)
    workspace_plans: Dict[int, WorkspacePlan] = Field(default_factory=dict)


class CodesphereConfig(Document):
    domain: str = ""
    workspace_hosting_base_domain: str = ""
    public_ip: str = ""
    custom_domains: CustomDomainsConfig = Field(default_factory=CustomDomainsConfig)
    dns_servers: List[str] = Field(default_factory=list)
    experiments: List[str] = Field(default_factory=list)
    workspace_images: Optional[WorkspaceImagesConfig] = None
    deploy_config: DeployConfig = Field(default_factory=DeployConfig)
    plans: PlansConfig = Field(default_factory=PlansConfig)

    domain_auth_private_key: str = _secret()
    domain_auth_public_key: str = _secret()


class ManagedServiceBackendsConfig(Document):
    postgres: Optional[Dict[str, Any]] = None


class InstallConfig(Document):
    """Root of config.yaml."""
    data_center: DatacenterConfig = Field(default_factory=DatacenterConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)
    registry: Optional[RegistryConfig] = None
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    ceph: CephConfig = Field(default_factory=CephConfig)
    kubernetes: KubernetesConfig = Field(default_factory=KubernetesConfig)
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    metallb: Optional[MetalLBConfig] = Field(default=None, alias="metallb")
    codesphere: CodesphereConfig = Field(default_factory=CodesphereConfig)
    managed_service_backends: Optional[ManagedServiceBackendsConfig] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def marshal(self) -> bytes:
        """Serialize to YAML. Fields held in the vault are never included."""
        return dump_yaml(self.to_dict())

    @classmethod
    def unmarshal(cls, data: Union[bytes, str], source: str = "config") -> "InstallConfig":
        raw = load_yaml(data, source)
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise DocumentError(f"invalid {source}: {_describe(e)}") from e


# ---------------------------------------------------------------------------
# Vault
# ---------------------------------------------------------------------------

VAULT_SCHEMA = {
    "type": "object",
    "properties": {
        "secrets": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "fields": {
                        "type": "object",
                        "properties": {"password": {"type": ["string", "null"]}},
                    },
                    "file": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "content": {"type": ["string", "null"]},
                        },
                    },
                },
                "required": ["name"],
                "oneOf": [
                    {"required": ["fields"], "not": {"required": ["file"]}},
                    {"required": ["file"], "not": {"required": ["fields"]}},
                ],
            },
        },
    },
}


class SecretFields(Document):
    password: str = ""


class SecretFile(Document):
    name: str = ""
    content: str = ""


class SecretEntry(Document):
    """A named vault entry: a password field or a named file, never both."""
    name: str
    secret_fields: Optional[SecretFields] = Field(default=None, alias="fields")
    secret_file: Optional[SecretFile] = Field(default=None, alias="file")

    @model_validator(mode="after")
    def _exactly_one_kind(self) -> "SecretEntry":
        if (self.secret_fields is None) == (self.secret_file is None):
            raise ValueError(f"secret '{self.name}' must set exactly one of 'fields' or 'file'")
        return self

    @classmethod
    def password(cls, name: str, password: str) -> "SecretEntry":
        return cls(name=name, secret_fields=SecretFields(password=password))

    @classmethod
    def file(cls, name: str, file_name: str, content: str) -> "SecretEntry":
        return cls(name=name, secret_file=SecretFile(name=file_name, content=content))

    @property
    def value(self) -> str:
        if self.secret_file is not None:
            return self.secret_file.content
        return self.secret_fields.password


class InstallVault(Document):
    """Root of prod.vault.yaml."""
    secrets: List[SecretEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> "InstallVault":
        seen = set()
        for entry in self.secrets:
            if entry.name in seen:
                raise ValueError(f"duplicate secret name: {entry.name}")
            seen.add(entry.name)
        return self

    def get(self, name: str) -> Optional[SecretEntry]:
        for entry in self.secrets:
            if entry.name == name:
                return entry
        return None

    def names(self) -> List[str]:
        return [entry.name for entry in self.secrets]

    def upsert(self, entry: SecretEntry) -> bool:
        """Replace the entry with the same name in place, or append it.

        Returns True if the vault changed.
        """
        for index, existing in enumerate(self.secrets):
            if existing.name == entry.name:
                if existing.model_dump() == entry.model_dump():
                    return False
                self.secrets[index] = entry
                return True
        self.secrets.append(entry)
        return True

    def set_default(self, entry: SecretEntry) -> bool:
        """Append ``entry`` only if no entry with its name exists."""
        if self.get(entry.name) is not None:
            return False
        self.secrets.append(entry)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def marshal(self) -> bytes:
        return dump_yaml(self.to_dict())

    @classmethod
    def unmarshal(cls, data: Union[bytes, str], source: str = "vault") -> "InstallVault":
        raw = load_yaml(data, source)
        try:
            validate_schema(instance=raw, schema=VAULT_SCHEMA)
        except SchemaValidationError as e:
            location = ".".join(str(part) for part in e.absolute_path) or "<root>"
            raise DocumentError(f"invalid {source} at {location}: {e.message}") from e
        if raw.get("secrets") is None:
            raw["secrets"] = []
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise DocumentError(f"invalid {source}: {_describe(e)}") from e
