"""Upload golden VM disk images into CDI DataVolumes."""

from .errors import (
    DeadlineExceededError,
    GoldenImageError,
    ImageServerError,
    ImportFailedError,
    ImportJobExistsError,
    LocalImageNotFoundError,
    NotFoundError,
    StandardUploadNotImplementedError,
    StreamingError,
    UnrecognizedTopologyError,
    ValidationError,
    WaitTimeoutError,
)
from .sizing import get_pvc_size
from .uploader import GoldenImageUploader

__version__ = "0.1.0"
