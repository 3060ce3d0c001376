"""Golden image upload workflow."""

import logging
import os
import time

from . import crd, datavolume
from .errors import LocalImageNotFoundError, StandardUploadNotImplementedError
from .image_server import ImageServer
from .k8s import open_exec_session
from .network import namespace_has_primary_udn
from .streaming import push_file
from .waiting import Deadline

logger = logging.getLogger(__name__)


class GoldenImageUploader:
    """Upload a local disk image into a DataVolume in ``namespace``.

    Namespaces behind a primary UDN cannot be reached by the CDI upload
    proxy. For those, the image is copied into a temporary nginx pod in the
    namespace and imported by CDI over HTTP from there.
    """

    def __init__(self, v1, custom_api, namespace, pvc_name, pvc_size=crd.DEFAULT_PVC_SIZE,
                 storage_class=None, server_name=crd.SERVER_NAME, timeout=crd.UPLOAD_TIMEOUT,
                 open_session=None, clock=time.monotonic, sleep=time.sleep,
                 stdout=None, stderr=None):
        self.v1 = v1
        self.custom_api = custom_api
        self.namespace = namespace
        self.pvc_name = pvc_name
        self.pvc_size = pvc_size
        self.storage_class = storage_class
        self.server_name = server_name
        self.timeout = timeout
        self.open_session = open_session or (
            lambda namespace, pod, container, command: open_exec_session(
                v1, namespace, pod, container, command
            )
        )
        self.clock = clock
        self.sleep = sleep
        self.stdout = stdout
        self.stderr = stderr
        self.state = crd.STATE_IDLE
        self.phases = []

    def upload(self, local_image_path, deadline=None):
        """Run the whole workflow; raises on any failure."""
        if deadline is None:
            deadline = Deadline(self.timeout, clock=self.clock)

        try:
            if not os.path.isfile(local_image_path):
                raise LocalImageNotFoundError(f"local image not found: {local_image_path}")

            self.state = crd.STATE_DETECTING_NETWORK
            has_udn = namespace_has_primary_udn(
                self.v1, self.custom_api, self.namespace, deadline=deadline
            )

            if has_udn:
                logger.info(
                    f"Detected Primary UDN in namespace {self.namespace}, using HTTP source workflow"
                )
                self.state = crd.STATE_HTTP_PATH
                self.upload_via_http_source(local_image_path, deadline)
            else:
                logger.info(
                    f"No Primary UDN detected in namespace {self.namespace}, using standard upload flow"
                )
                self.state = crd.STATE_STANDARD_PATH
                self.upload_via_proxy(local_image_path)
        except Exception:
            self.state = crd.STATE_FAILED
            raise

        self.state = crd.STATE_DONE

    def upload_via_http_source(self, local_image_path, deadline):
        server = ImageServer(
            self.v1,
            self.namespace,
            name=self.server_name,
            clock=self.clock,
            sleep=self.sleep,
        )

        logger.info("Creating ephemeral image server...")
        with server.serving(deadline=deadline):
            logger.info(f"Streaming image {local_image_path} to pod...")
            push_file(
                self.open_session,
                self.namespace,
                server.pod_name,
                local_image_path,
                container=server.container,
                deadline=deadline,
                stdout=self.stdout,
                stderr=self.stderr,
            )

            logger.info("Creating DataVolume with HTTP source...")
            datavolume.submit(
                self.custom_api,
                self.namespace,
                self.pvc_name,
                self.pvc_size,
                server.url,
                storage_class=self.storage_class,
                deadline=deadline,
            )

            logger.info("Waiting for DataVolume to complete...")
            self.phases = datavolume.wait_for_completion(
                self.custom_api,
                self.namespace,
                self.pvc_name,
                deadline=deadline,
                clock=self.clock,
                sleep=self.sleep,
            )

        logger.info(f"Golden image {self.pvc_name} created successfully")

    def upload_via_proxy(self, local_image_path):
        # TODO: drive the CDI uploadproxy the way virtctl image-upload does
        raise StandardUploadNotImplementedError(
            "standard upload flow not implemented - use "
            f"'virtctl image-upload dv {self.pvc_name} -n {self.namespace} "
            f"--size={self.pvc_size} --image-path={local_image_path}' for non-UDN namespaces"
        )
