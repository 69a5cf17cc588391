import pytest
import yaml

from csctl.modules.k0s_config import generate_k0s_config
from csctl.modules.models import InstallConfig


def cluster_config(control_planes):
    config = InstallConfig()
    config.data_center.name = "fra"
    config.kubernetes = {
        "managed_by_codesphere": True,
        "api_server_host": "api.example.com",
        "control_planes": [{"ip_address": ip} for ip in control_planes],
        "pod_cidr": "100.96.0.0/11",
    }
    config.codesphere.domain = "codesphere.example.com"
    return config


def test_three_control_planes():
    k0s = generate_k0s_config(cluster_config(["10.0.1.1", "10.0.1.2", "10.0.1.3"]))

    assert k0s.metadata.name == "codesphere-fra"
    assert k0s.spec.api.address == "10.0.1.1"
    assert k0s.spec.api.external_address == "api.example.com"
    assert k0s.spec.api.sans == ["10.0.1.1", "10.0.1.2", "10.0.1.3", "api.example.com", "codesphere.example.com"]
    assert k0s.spec.storage.etcd.peer_address == "10.0.1.1"
    assert k0s.spec.network.pod_cidr == "100.96.0.0/11"


def test_marshal_uses_k0s_keys():
    data = yaml.safe_load(generate_k0s_config(cluster_config(["10.0.1.1"])).marshal())

    assert data["apiVersion"] == "k0s.k0sproject.io/v1beta1"
    assert data["kind"] == "ClusterConfig"
    assert data["spec"]["api"]["externalAddress"] == "api.example.com"
    assert data["spec"]["api"]["port"] == 6443
    assert data["spec"]["network"] == {"podCIDR": "100.96.0.0/11", "provider": "calico"}
    assert data["spec"]["storage"] == {"type": "etcd", "etcd": {"peerAddress": "10.0.1.1"}}
    assert data["spec"]["konnectivity"] == {"adminPort": 8133, "agentPort": 8132}
    assert data["spec"]["telemetry"] == {"enabled": False}


def test_sans_are_deduplicated():
    config = cluster_config(["10.0.1.1", "10.0.1.1"])
    config.kubernetes.api_server_host = "10.0.1.1"
    assert generate_k0s_config(config).spec.api.sans == ["10.0.1.1", "codesphere.example.com"]


def test_empty_control_plane_list():
    k0s = generate_k0s_config(cluster_config([]))
    assert k0s.spec.api.address == ""
    assert k0s.spec.storage.etcd.peer_address == ""


def test_none_config():
    with pytest.raises(ValueError):
        generate_k0s_config(None)


def test_generated_from_scratch(prod_config):
    first = generate_k0s_config(prod_config).marshal()
    prod_config.kubernetes.control_planes = [{"ip_address": "10.50.0.9"}]
    second = generate_k0s_config(prod_config)
    assert second.spec.api.address == "10.50.0.9"
    assert first != second.marshal()
