import pytest

from lokoctl.modules.platform import aks, packet


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep credentials from the developer's environment out of tests."""
    for name in (
        aks.CLIENT_ID_ENV,
        aks.CLIENT_SECRET_ENV,
        aks.SUBSCRIPTION_ID_ENV,
        aks.TENANT_ID_ENV,
        packet.AUTH_TOKEN_ENV,
        "AWS_DEFAULT_REGION",
        "KUBECONFIG",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def aks_raw(tmp_path):
    return {
        "asset_dir": str(tmp_path / "assets"),
        "cluster_name": "foo",
        "resource_group_name": "bar",
        "subscription_id": "sub",
        "tenant_id": "tenant",
        "client_id": "client",
        "client_secret": "secret",
        "worker_pools": [
            {"name": "default", "count": 1, "vm_size": "Standard_D2_v2"},
        ],
    }


@pytest.fixture
def packet_raw(tmp_path):
    return {
        "asset_dir": str(tmp_path / "assets"),
        "cluster_name": "mercury",
        "auth_token": "token",
        "project_id": "project",
        "facility": "ams1",
        "controller_count": 1,
        "ssh_pubkeys": ["ssh-rsa AAAA"],
        "dns": {"zone": "example.com", "provider": "route53"},
        "worker_pools": [
            {"name": "pool-1", "count": 2},
        ],
    }
