"""
Exception types for image synchronization.

Fatal errors abort the whole run. TransferError is the only soft failure:
the engine records it per image and keeps going.
"""

from __future__ import annotations


class ImageSyncError(RuntimeError):
    """Base exception for imagesync."""


class FatalSyncError(ImageSyncError):
    """Aborts the run before any further phase executes."""


class InvalidReferenceError(FatalSyncError, ValueError):
    """Raised when an image reference cannot be parsed."""

    def __init__(self, reference: str, detail: str):
        self.reference = reference
        super().__init__(f"invalid image reference {reference!r}: {detail}")


class ManifestError(FatalSyncError, ValueError):
    """Raised when the manifest document is malformed."""


class DuplicateImageError(FatalSyncError, ValueError):
    """Raised when one image is listed twice with different credentials."""

    def __init__(self, image: str):
        self.image = image
        super().__init__(f"image listed more than once with conflicting credentials: {image}")


class AuthResolutionError(FatalSyncError):
    """Credential lookup failed while building the desired state."""

    def __init__(self, host: str, cause: Exception | str):
        self.host = host
        self.cause = cause
        super().__init__(f"get auth for {host}: {cause}")


class HostQueryError(FatalSyncError):
    """The local image store could not be queried."""

    def __init__(self, image: str, cause: Exception):
        self.image = image
        self.cause = cause
        super().__init__(f"image host existence for {image}: {cause}")


class RemoteValidationError(FatalSyncError):
    """Remote reachability or authorization probe failed."""

    def __init__(self, image: str, cause: Exception):
        self.image = image
        self.cause = cause
        self.reason = getattr(cause, "reason", "unavailable")
        super().__init__(f"validating remote image {image} ({self.reason}): {cause}")


class DeadlineExceededError(FatalSyncError):
    """The shared run budget elapsed."""

    def __init__(self, phase: str, seconds: float):
        self.phase = phase
        self.seconds = seconds
        super().__init__(f"run deadline of {seconds:g}s exceeded during {phase}")


class TransferError(ImageSyncError):
    """A single image transfer failed."""

    def __init__(self, image: str, cause: Exception | str):
        self.image = image
        self.cause = cause
        super().__init__(f"pull image and wait for {image}: {cause}")


# ===========================================
# Registry client errors
# ===========================================


class RegistryError(ImageSyncError):
    """Base error raised by registry client implementations."""

    reason = "unavailable"


class ImageNotFoundError(RegistryError):
    """The image does not exist on the remote registry."""

    reason = "not_found"


class RegistryUnauthorizedError(RegistryError):
    """The registry rejected the supplied credentials."""

    reason = "unauthorized"


class RegistryUnavailableError(RegistryError):
    """The daemon or registry could not be reached."""

    reason = "unavailable"
