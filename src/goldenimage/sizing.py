"""PVC size recommendation for a local disk image."""

import os

GIB = 1024 ** 3

# qcow2 images expand when CDI converts them to raw
OVERHEAD = 1.2


def get_pvc_size(image_path):
    """Return a recommended PVC size such as ``"12Gi"`` for ``image_path``."""
    size = os.stat(image_path).st_size
    size_gi = int(size * OVERHEAD / GIB) + 1
    return f"{size_gi}Gi"
