import pytest

from lokoctl.errors import LokoctlError, ReleaseOperationError
from lokoctl.modules.components import ReleaseManager, get_metadata, new_component
from lokoctl.modules.k8s import NAME_LABEL


class FakeHelm:
    """In-memory release store shared by all namespaces of a fake cluster."""

    def __init__(self, releases, calls, namespace, history_error=None):
        self.releases = releases
        self.calls = calls
        self.namespace = namespace
        self.history_error = history_error

    def history(self, name):
        self.calls.append(("history", name))
        if self.history_error:
            raise ReleaseOperationError(self.history_error)
        if (self.namespace, name) in self.releases:
            return [{"revision": 1}]
        return None

    def install(self, name, chart, values, wait=False):
        self.calls.append(("install", name))
        self.releases[(self.namespace, name)] = values

    def upgrade(self, name, chart, values, wait=False):
        self.calls.append(("upgrade", name))
        self.releases[(self.namespace, name)] = values

    def uninstall(self, name):
        self.calls.append(("uninstall", name))
        del self.releases[(self.namespace, name)]


class FakeKube:
    def __init__(self):
        self.deleted_namespaces = []

    def delete_namespace(self, name):
        # Deleting a missing namespace is not an error.
        self.deleted_namespaces.append(name)


def manager(releases=None, calls=None, history_error=None):
    releases = {} if releases is None else releases
    calls = [] if calls is None else calls
    return ReleaseManager(
        "/tmp/kubeconfig",
        helm_factory=lambda kubeconfig, namespace: FakeHelm(releases, calls, namespace, history_error),
    )


def test_unknown_component():
    with pytest.raises(LokoctlError) as excinfo:
        get_metadata("no-such-component")
    assert "not found" in str(excinfo.value)


def test_new_component_overrides():
    component = new_component("external-dns", {"namespace": "dns", "wait": True, "replicas": 2})
    assert component.namespace == "dns"
    assert component.metadata.wait
    assert component.values == {"replicas": 2}
    assert component.namespace_labels() == {NAME_LABEL: "dns"}
    assert get_metadata("external-dns").namespace == "external-dns"


def test_apply_installs_then_upgrades():
    calls = []
    m = manager(calls=calls)
    assert m.apply("httpbin", "httpbin", "/charts/httpbin", {"a": 1})
    assert calls == [("history", "httpbin"), ("install", "httpbin"), ("upgrade", "httpbin")]


def test_apply_existing_release_only_upgrades():
    calls = []
    m = manager(releases={("httpbin", "httpbin"): {}}, calls=calls)
    assert not m.apply("httpbin", "httpbin", "/charts/httpbin", {"a": 1})
    assert ("install", "httpbin") not in calls
    assert calls[-1] == ("upgrade", "httpbin")


def test_exists_propagates_unexpected_errors():
    m = manager(history_error="cluster unreachable")
    with pytest.raises(ReleaseOperationError):
        m.exists("httpbin", "httpbin")


def test_delete_without_history_is_idempotent():
    calls = []
    kube = FakeKube()
    m = manager(calls=calls)

    assert not m.delete("httpbin", "httpbin", delete_namespace=True, kube=kube)
    assert not m.delete("httpbin", "httpbin", delete_namespace=True, kube=kube)

    assert ("uninstall", "httpbin") not in calls
    assert kube.deleted_namespaces == ["httpbin", "httpbin"]


def test_delete_existing_release():
    calls = []
    releases = {("httpbin", "httpbin"): {}}
    kube = FakeKube()
    m = manager(releases=releases, calls=calls)

    assert m.delete("httpbin", "httpbin", kube=kube)
    assert ("uninstall", "httpbin") in calls
    assert releases == {}
    assert kube.deleted_namespaces == []
