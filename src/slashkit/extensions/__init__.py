"""Extensions: manifest, acquisition, on-disk store, lifecycle management."""

from .acquire import ExtensionAcquirer, StagedExtension, infer_source
from .errors import (
    AcquisitionError,
    AcquisitionErrorKind,
    BusyError,
    ConflictError,
    ExtensionError,
    InstallError,
    InstallErrorKind,
    NotFoundError,
    TrustDenied,
    ValidationError,
)
from .manager import ExtensionManager
from .manifest import load_manifest, validate_extension_dir
from .models import (
    MANIFEST_FILENAME,
    Extension,
    ExtensionManifest,
    ExtensionSetting,
    ExtensionSource,
    InstallTransaction,
)
from .store import ExtensionStore
from .trust import AlwaysTrusted, FolderTrust, TrustOracle, TrustResult

__all__ = [
    "MANIFEST_FILENAME",
    "AcquisitionError",
    "AcquisitionErrorKind",
    "AlwaysTrusted",
    "BusyError",
    "ConflictError",
    "Extension",
    "ExtensionAcquirer",
    "ExtensionError",
    "ExtensionManager",
    "ExtensionManifest",
    "ExtensionSetting",
    "ExtensionSource",
    "ExtensionStore",
    "FolderTrust",
    "InstallError",
    "InstallErrorKind",
    "InstallTransaction",
    "NotFoundError",
    "StagedExtension",
    "TrustDenied",
    "TrustOracle",
    "TrustResult",
    "ValidationError",
    "infer_source",
    "load_manifest",
    "validate_extension_dir",
]
