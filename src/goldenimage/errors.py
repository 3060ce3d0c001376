"""Golden image upload errors."""


class GoldenImageError(Exception):
    """Base class for all upload workflow errors."""


class ValidationError(GoldenImageError, ValueError):
    """Missing or invalid input."""


class LocalImageNotFoundError(ValidationError, FileNotFoundError):
    """The local disk image does not exist."""


class NotFoundError(GoldenImageError):
    """A cluster resource the workflow depends on does not exist."""


class WaitTimeoutError(GoldenImageError, TimeoutError):
    """A readiness or completion wait ran out of time."""


class DeadlineExceededError(WaitTimeoutError):
    """The end-to-end upload deadline elapsed."""


class ImportFailedError(GoldenImageError):
    """The DataVolume import reached the Failed phase."""

    def __init__(self, name, conditions):
        self.name = name
        self.conditions = conditions or []
        super().__init__(f"DataVolume {name} failed: {self.conditions}")


class ImportJobExistsError(GoldenImageError):
    """A DataVolume with the requested name already exists."""


class StreamingError(GoldenImageError):
    """Copying the local image into the server pod failed."""


class ImageServerError(GoldenImageError):
    """The ephemeral image server pod stopped before becoming ready."""


class UnrecognizedTopologyError(GoldenImageError, ValueError):
    """A network definition spec has neither or both of layer2/layer3."""


class StandardUploadNotImplementedError(GoldenImageError, NotImplementedError):
    """The upload-proxy path is delegated to virtctl."""
