import pytest

from csctl.modules.models import InstallConfig
from csctl.modules.profiles import PROFILES, ProfileError, apply_profile


def test_dev_profile():
    config = apply_profile(InstallConfig(), "dev")

    assert config.data_center.name == "dev"
    assert config.postgres.mode == "install"
    assert config.postgres.replica is None
    assert config.kubernetes.managed_by_codesphere is True
    assert [host.is_master for host in config.ceph.hosts] == [True]
    assert config.cluster.certificates.ca.algorithm == "RSA"
    assert config.codesphere.plans.workspace_plans[1].hosting_plan_id == 1


def test_prod_profile_has_replica_and_three_ceph_hosts():
    config = apply_profile(InstallConfig(), "production")

    assert config.postgres.replica.name == "replica1"
    assert len(config.ceph.hosts) == 3
    assert sum(host.is_master for host in config.ceph.hosts) == 1
    assert config.kubernetes.worker_ips() == ["10.50.0.2", "10.50.0.3", "10.50.0.4"]


@pytest.mark.parametrize("name", sorted(PROFILES))
def test_profiles_are_idempotent(name):
    once = apply_profile(InstallConfig(), name)
    twice = apply_profile(once, name)
    assert twice.to_dict() == once.to_dict()


def test_profile_keeps_explicit_values():
    config = InstallConfig()
    config.data_center.name = "custom"
    config.codesphere.domain = "example.org"

    result = apply_profile(config, "dev")
    assert result.data_center.name == "custom"
    assert result.codesphere.domain == "example.org"
    assert config.postgres.mode is None


def test_empty_profile_name_is_a_copy():
    config = InstallConfig()
    result = apply_profile(config, "")
    assert result is not config
    assert result.to_dict() == config.to_dict()


def test_unknown_profile():
    with pytest.raises(ProfileError, match="unknown profile: staging"):
        apply_profile(InstallConfig(), "staging")
