"""Unit tests for the ephemeral image server."""

import pytest
from kubernetes import client

from conftest import api_error, pod_obj
from goldenimage import crd
from goldenimage.errors import ImageServerError, NotFoundError, WaitTimeoutError
from goldenimage.image_server import ImageServer
from goldenimage.waiting import Deadline


@pytest.fixture
def server(v1, clock):
    return ImageServer(v1, "vms", clock=clock, sleep=clock.sleep)


class TestStart:
    def test_creates_pod_and_waits_for_ready(self, server, v1, clock):
        v1.read_namespaced_pod.side_effect = [pod_obj(ready=False), pod_obj(ready=False), pod_obj()]

        server.start()

        body = v1.create_namespaced_pod.call_args.kwargs["body"]
        assert isinstance(body, client.V1Pod)
        container = body.spec.containers[0]
        assert body.metadata.name == crd.SERVER_NAME
        assert body.metadata.labels == {"app": crd.SERVER_NAME}
        assert body.spec.restart_policy == "Never"
        assert container.name == crd.SERVER_CONTAINER
        assert container.ports[0].container_port == crd.SERVER_PORT
        assert container.readiness_probe.tcp_socket.port == crd.SERVER_PORT
        assert clock.sleeps == [crd.SERVER_READY_INTERVAL, crd.SERVER_READY_INTERVAL]

    def test_requests_bounded_by_deadline(self, server, v1, clock):
        v1.read_namespaced_pod.side_effect = [pod_obj(ready=False), pod_obj()]
        deadline = Deadline(100, clock=clock)

        server.start(deadline=deadline)
        server.expose(deadline=deadline)

        assert v1.create_namespaced_pod.call_args.kwargs["_request_timeout"] == 100
        timeouts = [c.kwargs["_request_timeout"] for c in v1.read_namespaced_pod.call_args_list]
        assert timeouts == [100, 100 - crd.SERVER_READY_INTERVAL]
        service_timeout = v1.create_namespaced_service.call_args.kwargs["_request_timeout"]
        assert service_timeout == 100 - crd.SERVER_READY_INTERVAL

    def test_existing_pod_is_not_an_error(self, server, v1):
        v1.create_namespaced_pod.side_effect = api_error(409)

        server.start()
        server.start()

        assert v1.create_namespaced_pod.call_count == 2

    def test_create_error_propagates(self, server, v1):
        v1.create_namespaced_pod.side_effect = api_error(403)
        with pytest.raises(Exception) as excinfo:
            server.start()
        assert excinfo.value.status == 403
        v1.read_namespaced_pod.assert_not_called()

    def test_ready_timeout(self, server, v1, clock):
        v1.read_namespaced_pod.return_value = pod_obj(phase="Pending", ready=False)

        with pytest.raises(WaitTimeoutError):
            server.start()
        assert clock.now == crd.SERVER_READY_TIMEOUT

    def test_pod_vanishes(self, server, v1):
        v1.read_namespaced_pod.side_effect = api_error(404)
        with pytest.raises(NotFoundError):
            server.start()

    def test_pod_terminated(self, server, v1):
        v1.read_namespaced_pod.return_value = pod_obj(phase="Failed", ready=False)
        with pytest.raises(ImageServerError):
            server.start()


class TestExpose:
    def test_creates_service(self, server, v1):
        server.expose()

        body = v1.create_namespaced_service.call_args.kwargs["body"]
        assert body.metadata.name == crd.SERVER_NAME
        assert body.spec.type == "ClusterIP"
        assert body.spec.selector == {"app": crd.SERVER_NAME}
        assert body.spec.ports[0].port == crd.SERVER_PORT

    def test_existing_service_is_not_an_error(self, server, v1):
        v1.create_namespaced_service.side_effect = api_error(409)
        server.expose()

    def test_url(self, v1):
        server = ImageServer(v1, "vms", name="srv-1")
        assert server.url == "http://srv-1.vms.svc.cluster.local:80/disk.qcow2"


class TestStop:
    def test_deletes_service_and_pod(self, server, v1):
        server.stop()

        v1.delete_namespaced_service.assert_called_once_with(name=crd.SERVER_NAME, namespace="vms")
        v1.delete_namespaced_pod.assert_called_once_with(
            name=crd.SERVER_NAME, namespace="vms", grace_period_seconds=0
        )

    def test_not_found_is_a_warning(self, server, v1, caplog):
        v1.delete_namespaced_service.side_effect = api_error(404)
        v1.delete_namespaced_pod.side_effect = api_error(404)

        server.stop()

        assert "not found" in caplog.text

    def test_other_failures_never_raise(self, server, v1):
        v1.delete_namespaced_service.side_effect = api_error(500)
        v1.delete_namespaced_pod.side_effect = RuntimeError("connection reset")

        server.stop()

        v1.delete_namespaced_pod.assert_called_once()


class TestServing:
    def test_stops_once_on_success(self, server, v1):
        with server.serving():
            v1.delete_namespaced_pod.assert_not_called()
        v1.delete_namespaced_pod.assert_called_once()

    def test_stops_once_on_error(self, server, v1):
        with pytest.raises(RuntimeError):
            with server.serving():
                raise RuntimeError("boom")
        v1.delete_namespaced_pod.assert_called_once()
        v1.delete_namespaced_service.assert_called_once()

    def test_stops_when_start_fails(self, server, v1):
        v1.read_namespaced_pod.return_value = pod_obj(phase="Pending", ready=False)
        with pytest.raises(WaitTimeoutError):
            with server.serving():
                pass
        v1.delete_namespaced_pod.assert_called_once()
        v1.create_namespaced_service.assert_not_called()
