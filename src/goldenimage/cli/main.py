#!/usr/bin/env python3
"""
Golden Image Upload CLI

Uploads a local VM disk image into a CDI DataVolume, switching to an
in-namespace HTTP source when the namespace uses a primary user-defined
network.
"""

import argparse
import logging
import os
import sys

from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from .. import crd
from ..errors import GoldenImageError
from ..k8s import get_clients, load_api_client
from ..sizing import get_pvc_size
from ..uploader import GoldenImageUploader

USAGE = "Usage: golden-image-upload --namespace <ns> --name <name> --image-path <path>"


def build_parser():
    parser = argparse.ArgumentParser(
        prog="golden-image-upload",
        description="Upload a golden VM disk image into a CDI DataVolume",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload with the default 10Gi size
  %(prog)s --namespace vms --name fedora-golden --image-path ./fedora.qcow2

  # Size the PVC from the image (file size + 20%%, rounded up to Gi)
  %(prog)s -n vms --name fedora-golden --image-path ./fedora.qcow2 --size auto

  # Use a specific storage class and kubeconfig
  %(prog)s -n vms --name win-golden --image-path ./win.qcow2 \\
      --storage-class ocs-storagecluster-ceph-rbd --kubeconfig ~/.kube/prod
        """,
    )
    parser.add_argument(
        "--kubeconfig",
        default=os.environ.get("KUBECONFIG", ""),
        help="Path to kubeconfig file (default: $KUBECONFIG, then in-cluster config)",
    )
    parser.add_argument("--namespace", "-n", default="", help="Target namespace for golden image")
    parser.add_argument("--name", default="", help="Name for the DataVolume/PVC")
    parser.add_argument(
        "--size",
        default=crd.DEFAULT_PVC_SIZE,
        help=f"Size of the PVC, or 'auto' to derive it from the image (default: {crd.DEFAULT_PVC_SIZE})",
    )
    parser.add_argument("--storage-class", default="", help="Storage class (optional)")
    parser.add_argument("--image-path", default="", help="Path to local disk image")
    parser.add_argument(
        "--timeout",
        type=int,
        default=crd.UPLOAD_TIMEOUT,
        help=f"Overall timeout in seconds (default: {crd.UPLOAD_TIMEOUT})",
    )
    parser.add_argument(
        "--server-name",
        default=crd.SERVER_NAME,
        help=f"Name of the temporary image server pod/service (default: {crd.SERVER_NAME})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")
    return parser


def main(argv=None):
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not args.namespace or not args.name or not args.image_path:
        print(USAGE)
        parser.print_help()
        return 1

    pvc_size = args.size
    if pvc_size == "auto":
        try:
            pvc_size = get_pvc_size(args.image_path)
        except OSError as e:
            print(f"✗ Error sizing image: {e}", file=sys.stderr)
            return 1
        print(f"Using PVC size {pvc_size}")

    try:
        api_client = load_api_client(args.kubeconfig or None)
    except (ConfigException, OSError) as e:
        print(f"✗ Error building kubeconfig: {e}", file=sys.stderr)
        return 1

    v1, custom_api = get_clients(api_client)
    uploader = GoldenImageUploader(
        v1,
        custom_api,
        args.namespace,
        args.name,
        pvc_size=pvc_size,
        storage_class=args.storage_class or None,
        server_name=args.server_name,
        timeout=args.timeout,
    )

    try:
        uploader.upload(args.image_path)
    except (GoldenImageError, ApiException) as e:
        print(f"✗ Error uploading image: {e}", file=sys.stderr)
        return 1

    print(f"✓ Upload completed successfully! DataVolume '{args.name}' is ready in '{args.namespace}'")
    return 0


if __name__ == "__main__":
    sys.exit(main())
