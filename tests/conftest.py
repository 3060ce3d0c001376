"""
Shared fixtures for the golden image upload tests.

Nothing here talks to a cluster: the Kubernetes APIs are MagicMocks, time is
a fake clock advanced by sleep(), and the exec session is an in-memory stand
in for kubernetes.stream.ws_client.WSClient.
"""

import io
import tarfile
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException
from kubernetes.stream.ws_client import STDIN_CHANNEL, V5_CHANNEL_PROTOCOL


def api_error(status):
    reasons = {404: "Not Found", 409: "Conflict", 403: "Forbidden", 500: "Internal Server Error"}
    return ApiException(status=status, reason=reasons.get(status, "Error"))


def namespace_obj(labels):
    return SimpleNamespace(metadata=SimpleNamespace(name="vms", labels=labels))


def pod_obj(phase="Running", ready=True):
    conditions = [SimpleNamespace(type="Ready", status="True" if ready else "False")]
    return SimpleNamespace(status=SimpleNamespace(phase=phase, conditions=conditions))


def cudn(name, role="Primary", topology="layer2", selector=None):
    spec = {"network": {"topology": topology.capitalize(), topology: {"role": role}}}
    if selector is not None:
        spec["namespaceSelector"] = selector
    return {"metadata": {"name": name}, "spec": spec}


def udn(name, role="Primary", topology="layer3"):
    return {"metadata": {"name": name}, "spec": {"topology": topology.capitalize(), topology: {"role": role}}}


def datavolume(phase=None, conditions=None):
    dv = {"metadata": {"name": "golden"}}
    if phase is not None:
        dv["status"] = {"phase": phase}
        if conditions is not None:
            dv["status"]["conditions"] = conditions
    return dv


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def archive_complete(data):
    return (
        len(data) >= 2 * tarfile.BLOCKSIZE
        and len(data) % tarfile.RECORDSIZE == 0
        and data.endswith(tarfile.NUL * 2 * tarfile.BLOCKSIZE)
    )


class FakeExecSession:
    """Collects stdin; tar exits with ``returncode`` once stdin is closed.

    As with the real client, stdin can only be half-closed on the v5 channel
    protocol. ``hangs`` keeps tar running after stdin is closed.
    """

    def __init__(self, returncode=0, stdout="", stderr="", exits_early=False,
                 subprotocol=V5_CHANNEL_PROTOCOL, hangs=False):
        self.received = bytearray()
        self.subprotocol = subprotocol
        self.stdin_closed = False
        self.received_before_stdin_closed = None
        self._returncode = returncode
        self._stdout = stdout
        self._stderr = stderr
        self._exited = exits_early
        self._hangs = hangs
        self.closed = False

    def is_open(self):
        return not self._exited and not self.closed

    def update(self, timeout=0):
        if self.stdin_closed and not self._hangs:
            self._exited = True

    def write_stdin(self, data):
        assert not self.stdin_closed, "write after stdin was closed"
        self.received.extend(data)

    def close_channel(self, channel):
        if self.subprotocol == V5_CHANNEL_PROTOCOL and channel == STDIN_CHANNEL:
            self.stdin_closed = True
            self.received_before_stdin_closed = bytes(self.received)

    def peek_stdout(self):
        return bool(self._stdout) and self._exited

    def read_stdout(self):
        out, self._stdout = self._stdout, ""
        return out

    def peek_stderr(self):
        return bool(self._stderr) and self._exited

    def read_stderr(self):
        err, self._stderr = self._stderr, ""
        return err

    @property
    def returncode(self):
        return self._returncode if self._exited else None

    def close(self):
        self.closed = True

    def members(self):
        with tarfile.open(fileobj=io.BytesIO(bytes(self.received)), mode="r:") as tar:
            return {m.name: (m, tar.extractfile(m).read()) for m in tar.getmembers()}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def v1():
    api = MagicMock()
    api.read_namespaced_pod.return_value = pod_obj()
    return api


@pytest.fixture
def custom_api():
    api = MagicMock()
    api.list_cluster_custom_object.return_value = {"items": []}
    api.list_namespaced_custom_object.return_value = {"items": []}
    return api


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "disk.qcow2"
    path.write_bytes(b"q" * 100)
    return path
