"""CDI DataVolume creation and status polling."""

import json
import logging
import time

from kubernetes.client.rest import ApiException

from . import crd
from .errors import ImportFailedError, ImportJobExistsError, NotFoundError
from .templates import create_datavolume_manifest
from .waiting import poll_until, request_timeout

logger = logging.getLogger(__name__)


def _api_message(e):
    if not e.body:
        return str(e)
    try:
        return json.loads(e.body).get("message", str(e))
    except (ValueError, AttributeError):
        return str(e)


def submit(custom_api, namespace, name, size, url, storage_class=None, deadline=None):
    """Create a DataVolume importing from ``url``.

    An existing DataVolume with the same name is an error: it belongs to
    someone else or to an earlier run that has to be cleaned up first.
    """
    body = create_datavolume_manifest(name, namespace, size, url, storage_class)
    try:
        custom_api.create_namespaced_custom_object(
            group=crd.DV_GROUP,
            version=crd.DV_VERSION,
            namespace=namespace,
            plural=crd.DV_PLURAL,
            body=body,
            _request_timeout=request_timeout(deadline, "DataVolume creation"),
        )
    except ApiException as e:
        if e.status == 409:
            raise ImportJobExistsError(
                f"DataVolume {name} already exists in namespace {namespace}"
            ) from e
        logger.error(f"Failed to create DataVolume: {_api_message(e)}")
        raise
    logger.info(f"DataVolume {name} created with source {url}")
    return body


def get_status(custom_api, namespace, name, deadline=None):
    """Return the DataVolume status dict, or None if not yet populated."""
    try:
        dv = custom_api.get_namespaced_custom_object(
            group=crd.DV_GROUP,
            version=crd.DV_VERSION,
            namespace=namespace,
            plural=crd.DV_PLURAL,
            name=name,
            _request_timeout=request_timeout(deadline, f"DataVolume {name}"),
        )
    except ApiException as e:
        if e.status == 404:
            raise NotFoundError(f"DataVolume {name} not found") from e
        logger.error(f"Error getting DataVolume: {e}")
        raise

    status = dv.get("status")
    return status if isinstance(status, dict) else None


class _PhaseWatcher:
    """Poll condition that tracks phase transitions of one DataVolume."""

    def __init__(self, custom_api, namespace, name, on_phase=None, deadline=None):
        self.custom_api = custom_api
        self.namespace = namespace
        self.name = name
        self.on_phase = on_phase
        self.deadline = deadline
        self.last_phase = None
        self.phases = []

    def __call__(self):
        status = get_status(self.custom_api, self.namespace, self.name, deadline=self.deadline)
        if status is None:
            return False

        phase = status.get("phase") or ""
        if phase != self.last_phase:
            logger.info(f"DataVolume phase: {phase}")
            self.last_phase = phase
            self.phases.append(phase)
            if self.on_phase:
                self.on_phase(phase)

        if phase == crd.PHASE_FAILED:
            raise ImportFailedError(self.name, status.get("conditions") or [])

        return phase == crd.PHASE_SUCCEEDED


def wait_for_completion(custom_api, namespace, name, interval=crd.DV_POLL_INTERVAL,
                        timeout=crd.DV_TIMEOUT, deadline=None, on_phase=None,
                        clock=time.monotonic, sleep=time.sleep):
    """Poll the DataVolume until it reaches Succeeded.

    Any phase other than Succeeded or Failed keeps polling. Returns the list
    of distinct phases observed, in order.
    """
    watcher = _PhaseWatcher(custom_api, namespace, name, on_phase=on_phase, deadline=deadline)
    poll_until(
        watcher,
        interval=interval,
        timeout=timeout,
        what=f"DataVolume {name}",
        deadline=deadline,
        clock=clock,
        sleep=sleep,
    )
    return watcher.phases
