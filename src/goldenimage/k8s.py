"""Kubernetes client helpers."""

import logging
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from kubernetes.stream import stream

logger = logging.getLogger(__name__)


def load_api_client(kubeconfig=None):
    """Build an ApiClient from a kubeconfig path, or in-cluster config.

    Without an explicit path, in-cluster config is tried first and the
    default kubeconfig location is used as a fallback.
    """
    if kubeconfig:
        api_client = config.new_client_from_config(config_file=kubeconfig)
        logger.info(f"Loaded kubeconfig {kubeconfig}")
        return api_client

    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except ConfigException:
        config.load_kube_config()
        logger.info("Loaded kubeconfig")
    return client.ApiClient()


def get_clients(api_client):
    """Get the typed clients the uploader needs."""
    return client.CoreV1Api(api_client), client.CustomObjectsApi(api_client)


def get_pod_status(v1, pod_name, namespace, timeout=None):
    """Get pod phase and readiness, or None if the pod does not exist."""
    try:
        pod = v1.read_namespaced_pod(name=pod_name, namespace=namespace, _request_timeout=timeout)
    except ApiException as e:
        if e.status == 404:
            return None
        logger.error(f"Error getting pod status: {e}")
        raise

    return {
        "phase": pod.status.phase,
        "ready": any(
            c.type == "Ready" and c.status == "True"
            for c in (pod.status.conditions or [])
        ),
    }


def open_exec_session(v1, namespace, pod_name, container, command):
    """Open a non-TTY exec session with stdin, stdout and stderr attached.

    stream() swaps the request method of the ApiClient it is given for a
    websocket one, so the session gets its own ApiClient.
    """
    stream_client = client.CoreV1Api(client.ApiClient(v1.api_client.configuration))
    logger.debug(f"Opening exec session in {namespace}/{pod_name}: {' '.join(command)}")
    return stream(
        stream_client.connect_get_namespaced_pod_exec,
        pod_name,
        namespace,
        container=container,
        command=command,
        stdin=True,
        stdout=True,
        stderr=True,
        tty=False,
        _preload_content=False,
    )
