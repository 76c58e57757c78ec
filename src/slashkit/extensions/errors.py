"""Extension lifecycle errors."""

from __future__ import annotations

from enum import Enum


class AcquisitionErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    NETWORK_FAILURE = "network_failure"
    CHECKSUM_MISMATCH = "checksum_mismatch"
    UNSUPPORTED_SOURCE = "unsupported_source"
    CANCELLED = "cancelled"


class InstallErrorKind(str, Enum):
    VALIDATION = "validation"
    TRUST_DENIED = "trust_denied"
    CONFLICT = "conflict"


class ExtensionError(Exception):
    """Base for every failure surfaced by the extension manager."""

    kind: str = "extension_error"

    def __init__(self, message: str, *, name: str = ""):
        super().__init__(message)
        self.name = name


class AcquisitionError(ExtensionError):
    def __init__(self, kind: AcquisitionErrorKind, message: str, *, name: str = ""):
        super().__init__(message, name=name)
        self.kind = kind


class InstallError(ExtensionError):
    def __init__(self, kind: InstallErrorKind, message: str, *, name: str = ""):
        super().__init__(message, name=name)
        self.kind = kind


class ValidationError(InstallError):
    """Manifest missing or malformed, or acquired content failed to load."""

    def __init__(self, message: str, *, name: str = ""):
        super().__init__(InstallErrorKind.VALIDATION, message, name=name)


class TrustDenied(InstallError):
    def __init__(self, message: str, *, name: str = ""):
        super().__init__(InstallErrorKind.TRUST_DENIED, message, name=name)


class ConflictError(InstallError):
    def __init__(self, message: str, *, name: str = ""):
        super().__init__(InstallErrorKind.CONFLICT, message, name=name)


class NotFoundError(ExtensionError):
    kind = "not_found"


class BusyError(ExtensionError):
    """Another install/update/uninstall for the same name is in flight."""

    kind = "busy"
