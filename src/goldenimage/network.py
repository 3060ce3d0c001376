"""Primary user-defined network detection.

A namespace is behind a primary UDN when it carries the OVN primary-UDN label
and either a ClusterUserDefinedNetwork with role Primary selects it, or a
UserDefinedNetwork with role Primary lives inside it. Pods in such a
namespace are not reachable through the CDI upload proxy, so the image has
to be pulled from inside the namespace instead.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from kubernetes.client.rest import ApiException

from . import crd
from .errors import NotFoundError, UnrecognizedTopologyError
from .selector import LabelSelector, matches, parse_selector
from .waiting import request_timeout

logger = logging.getLogger(__name__)

SCOPE_CLUSTER = "cluster"
SCOPE_NAMESPACE = "namespace"


@dataclass(frozen=True)
class Layer2:
    role: Optional[str] = None


@dataclass(frozen=True)
class Layer3:
    role: Optional[str] = None


NetworkTopology = Union[Layer2, Layer3]


@dataclass
class NetworkDefinition:
    name: str
    scope: str
    topology: NetworkTopology
    namespace_selector: Optional[LabelSelector] = None

    @property
    def is_primary(self):
        return self.topology.role == crd.ROLE_PRIMARY


def decode_topology(spec) -> NetworkTopology:
    """Decode the layer2/layer3 block of a CUDN or UDN spec.

    CUDNs nest the topology under ``spec.network``; UDNs carry it directly
    in ``spec``. A layer block at the spec root is used when ``spec.network``
    has none. Exactly one of ``layer2`` or ``layer3`` must be present.
    """
    if not isinstance(spec, dict):
        raise UnrecognizedTopologyError("network spec is not a mapping")

    network = spec.get("network")
    source = spec
    if isinstance(network, dict) and (
        isinstance(network.get("layer2"), dict) or isinstance(network.get("layer3"), dict)
    ):
        source = network

    layer2 = source.get("layer2")
    layer3 = source.get("layer3")
    if isinstance(layer2, dict) and isinstance(layer3, dict):
        raise UnrecognizedTopologyError("network spec has both layer2 and layer3")

    if isinstance(layer2, dict):
        block, variant = layer2, Layer2
    elif isinstance(layer3, dict):
        block, variant = layer3, Layer3
    else:
        topology = (network if isinstance(network, dict) else spec).get("topology", "unknown")
        raise UnrecognizedTopologyError(f"unsupported network topology: {topology}")

    role = block.get("role")
    return variant(role=role if isinstance(role, str) else None)


def decode_network_definition(obj, scope) -> NetworkDefinition:
    """Decode a CUDN/UDN custom object returned by CustomObjectsApi."""
    name = obj.get("metadata", {}).get("name", "")
    spec = obj.get("spec")
    selector = None
    if scope == SCOPE_CLUSTER and isinstance(spec, dict):
        selector = parse_selector(spec.get("namespaceSelector"))
    return NetworkDefinition(
        name=name,
        scope=scope,
        topology=decode_topology(spec),
        namespace_selector=selector,
    )


def _decode_items(items, scope):
    for obj in items:
        try:
            yield decode_network_definition(obj, scope)
        except UnrecognizedTopologyError as e:
            name = obj.get("metadata", {}).get("name", "<unnamed>")
            logger.warning(f"Skipping {scope} network definition {name}: {e}")


def list_cluster_networks(custom_api, deadline=None):
    """List ClusterUserDefinedNetworks, or [] when the CRD is not installed."""
    try:
        response = custom_api.list_cluster_custom_object(
            group=crd.OVN_GROUP,
            version=crd.OVN_VERSION,
            plural=crd.CUDN_PLURAL,
            _request_timeout=request_timeout(deadline, "network detection"),
        )
    except ApiException as e:
        if e.status == 404:
            logger.debug("ClusterUserDefinedNetwork CRD not found, assuming none")
            return []
        logger.error(f"Error listing ClusterUserDefinedNetworks: {e}")
        raise
    return list(_decode_items(response.get("items", []), SCOPE_CLUSTER))


def list_namespace_networks(custom_api, namespace, deadline=None):
    """List UserDefinedNetworks in ``namespace``, or [] when the CRD is not installed."""
    try:
        response = custom_api.list_namespaced_custom_object(
            group=crd.OVN_GROUP,
            version=crd.OVN_VERSION,
            namespace=namespace,
            plural=crd.UDN_PLURAL,
            _request_timeout=request_timeout(deadline, "network detection"),
        )
    except ApiException as e:
        if e.status == 404:
            logger.debug("UserDefinedNetwork CRD not found, assuming none")
            return []
        logger.error(f"Error listing UserDefinedNetworks: {e}")
        raise
    return list(_decode_items(response.get("items", []), SCOPE_NAMESPACE))


def get_namespace_labels(v1, namespace, deadline=None):
    try:
        ns = v1.read_namespace(
            name=namespace, _request_timeout=request_timeout(deadline, "network detection")
        )
    except ApiException as e:
        if e.status == 404:
            raise NotFoundError(f"Namespace {namespace} not found") from e
        logger.error(f"Error getting namespace {namespace}: {e}")
        raise
    return dict(ns.metadata.labels or {})


def namespace_has_primary_udn(v1, custom_api, namespace, deadline=None):
    """Return True if ``namespace`` uses a primary user-defined network."""
    labels = get_namespace_labels(v1, namespace, deadline=deadline)
    if crd.PRIMARY_UDN_LABEL not in labels:
        logger.info(f"Namespace {namespace} has no {crd.PRIMARY_UDN_LABEL} label")
        return False

    for cudn in list_cluster_networks(custom_api, deadline=deadline):
        if not cudn.is_primary:
            continue
        if cudn.namespace_selector is None or not matches(cudn.namespace_selector, labels):
            continue
        logger.info(f"Namespace {namespace} selected by primary ClusterUserDefinedNetwork {cudn.name}")
        return True

    for udn in list_namespace_networks(custom_api, namespace, deadline=deadline):
        if udn.is_primary:
            logger.info(f"Namespace {namespace} has primary UserDefinedNetwork {udn.name}")
            return True

    return False
