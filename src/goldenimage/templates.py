"""Kubernetes resource templates."""

from kubernetes import client

from . import crd


def server_url(service_name, namespace, port=crd.SERVER_PORT, file_name=crd.IMAGE_FILE_NAME):
    """In-cluster URL of the image served by the ephemeral server."""
    return f"http://{service_name}.{namespace}.svc.cluster.local:{port}/{file_name}"


def create_server_pod_manifest(pod_name, namespace, image=crd.SERVER_IMAGE):
    """Create the nginx pod manifest that serves the uploaded image."""
    return client.V1Pod(
        metadata=client.V1ObjectMeta(
            name=pod_name,
            namespace=namespace,
            labels={"app": pod_name},
        ),
        spec=client.V1PodSpec(
            restart_policy="Never",
            containers=[
                client.V1Container(
                    name=crd.SERVER_CONTAINER,
                    image=image,
                    command=[
                        "sh",
                        "-c",
                        f"mkdir -p {crd.SERVER_ROOT} && nginx -g 'daemon off;'",
                    ],
                    ports=[
                        client.V1ContainerPort(
                            container_port=crd.SERVER_PORT,
                            protocol="TCP",
                        )
                    ],
                    readiness_probe=client.V1Probe(
                        tcp_socket=client.V1TCPSocketAction(port=crd.SERVER_PORT),
                        initial_delay_seconds=2,
                        period_seconds=2,
                    ),
                )
            ],
        ),
    )


def create_server_service_manifest(service_name, namespace, pod_name):
    """Create the ClusterIP service in front of the image server pod."""
    return client.V1Service(
        metadata=client.V1ObjectMeta(name=service_name, namespace=namespace),
        spec=client.V1ServiceSpec(
            type="ClusterIP",
            selector={"app": pod_name},
            ports=[
                client.V1ServicePort(
                    port=crd.SERVER_PORT,
                    target_port=crd.SERVER_PORT,
                    protocol="TCP",
                )
            ],
        ),
    )


def create_datavolume_manifest(name, namespace, size, url, storage_class=None):
    """Create a DataVolume body with an HTTP source."""
    storage = {"resources": {"requests": {"storage": size}}}
    if storage_class:
        storage["storageClassName"] = storage_class

    return {
        "apiVersion": crd.DV_API_VERSION,
        "kind": crd.DV_KIND,
        "metadata": {
            "name": name,
            "namespace": namespace,
            "annotations": {crd.BIND_IMMEDIATE_ANNOTATION: ""},
        },
        "spec": {
            "source": {"http": {"url": url}},
            "storage": storage,
        },
    }
