"""Ephemeral nginx server that exposes the image to the CDI importer."""

import logging
import time
from contextlib import contextmanager

from kubernetes.client.rest import ApiException

from . import crd
from .errors import ImageServerError, NotFoundError
from .k8s import get_pod_status
from .templates import (
    create_server_pod_manifest,
    create_server_service_manifest,
    server_url,
)
from .waiting import poll_until, request_timeout

logger = logging.getLogger(__name__)


class ImageServer:
    """Pod + ClusterIP service pair named ``name`` in ``namespace``.

    The name is fixed per run, so two uploads into the same namespace with
    the same server name will trample each other.
    """

    def __init__(self, v1, namespace, name=crd.SERVER_NAME, image=crd.SERVER_IMAGE,
                 ready_interval=crd.SERVER_READY_INTERVAL,
                 ready_timeout=crd.SERVER_READY_TIMEOUT,
                 clock=time.monotonic, sleep=time.sleep):
        self.v1 = v1
        self.namespace = namespace
        self.name = name
        self.image = image
        self.ready_interval = ready_interval
        self.ready_timeout = ready_timeout
        self._clock = clock
        self._sleep = sleep

    @property
    def pod_name(self):
        return self.name

    @property
    def service_name(self):
        return self.name

    @property
    def container(self):
        return crd.SERVER_CONTAINER

    @property
    def url(self):
        return server_url(self.service_name, self.namespace)

    def start(self, deadline=None):
        """Create the server pod (if missing) and wait until it is ready."""
        pod = create_server_pod_manifest(self.pod_name, self.namespace, self.image)
        try:
            self.v1.create_namespaced_pod(
                namespace=self.namespace,
                body=pod,
                _request_timeout=request_timeout(deadline, "server pod creation"),
            )
            logger.info(f"Pod {self.pod_name} created")
        except ApiException as e:
            if e.status != 409:
                logger.error(f"Failed to create pod: {e}")
                raise
            logger.info(f"Pod {self.pod_name} already exists")

        poll_until(
            lambda: self._pod_ready(deadline),
            interval=self.ready_interval,
            timeout=self.ready_timeout,
            what=f"pod {self.pod_name} to become ready",
            deadline=deadline,
            clock=self._clock,
            sleep=self._sleep,
        )
        logger.info(f"Pod {self.pod_name} is ready")

    def _pod_ready(self, deadline=None):
        status = get_pod_status(
            self.v1, self.pod_name, self.namespace,
            timeout=request_timeout(deadline, f"pod {self.pod_name} to become ready"),
        )
        if status is None:
            raise NotFoundError(f"Pod {self.pod_name} disappeared while starting")
        if status["phase"] in ("Succeeded", "Failed"):
            raise ImageServerError(f"Pod {self.pod_name} terminated with phase {status['phase']}")
        return status["ready"]

    def expose(self, deadline=None):
        """Create the ClusterIP service in front of the pod (if missing)."""
        svc = create_server_service_manifest(self.service_name, self.namespace, self.pod_name)
        try:
            self.v1.create_namespaced_service(
                namespace=self.namespace,
                body=svc,
                _request_timeout=request_timeout(deadline, "server service creation"),
            )
            logger.info(f"Service {self.service_name} created")
        except ApiException as e:
            if e.status != 409:
                logger.error(f"Failed to create service: {e}")
                raise
            logger.info(f"Service {self.service_name} already exists")

    def stop(self):
        """Delete the service and the pod. Never raises."""
        logger.info("Cleaning up ephemeral resources...")
        self._delete(
            "service",
            self.service_name,
            lambda: self.v1.delete_namespaced_service(
                name=self.service_name, namespace=self.namespace
            ),
        )
        self._delete(
            "pod",
            self.pod_name,
            lambda: self.v1.delete_namespaced_pod(
                name=self.pod_name, namespace=self.namespace, grace_period_seconds=0
            ),
        )

    def _delete(self, kind, name, delete):
        try:
            delete()
            logger.info(f"Deleted {kind} {name}")
        except ApiException as e:
            if e.status == 404:
                logger.warning(f"{kind.capitalize()} {name} not found (may already be deleted)")
            else:
                logger.warning(f"Failed to delete {kind} {name}: {e}")
        except Exception as e:
            logger.warning(f"Failed to delete {kind} {name}: {e}", exc_info=True)

    @contextmanager
    def serving(self, deadline=None):
        """Start and expose the server; stop it on every exit path."""
        try:
            self.start(deadline=deadline)
            self.expose(deadline=deadline)
            yield self
        finally:
            self.stop()
