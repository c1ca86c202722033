"""Configuration state accumulated across provisioning stages."""

from collections.abc import Callable, Iterator
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from vllminstaller.errors import ContextConflictError, MissingContextValueError


class ContextKey(StrEnum):
    """Every value a stage may read from or write to the provisioning context."""

    # Seeded from the installer configuration
    ACCOUNT = "account"
    INSTALL_ROOT = "install_root"
    VENV_DIR = "venv_dir"
    MODELS_DIR = "models_dir"
    UV_EXECUTABLE = "uv_executable"

    # Prerequisites
    OS_NAME = "os_name"
    GPU_NAME = "gpu_name"
    COMPUTE_CAPABILITY = "compute_capability"

    # Configuration collector
    HOST = "host"
    PORT = "port"
    GPU_MEMORY_UTILIZATION = "gpu_memory_utilization"
    TENSOR_PARALLEL_SIZE = "tensor_parallel_size"
    MAX_MODEL_LEN = "max_model_len"
    DTYPE = "dtype"

    # Environment provisioning
    PYTHON_VERSION = "python_version"
    VLLM_VERSION = "vllm_version"

    # Service registration
    MODEL_REFERENCE = "model_reference"
    EXTRA_FLAGS = "extra_flags"
    SERVICE_REGISTERED = "service_registered"


ConfirmOverwrite = Callable[[ContextKey, Any, Any], bool]


class ProvisioningContext:
    """Write-once mapping threaded through every stage.

    A key may be written once. Writing the same value again is a no-op; writing a
    different value requires an explicit confirmation callback that returns True.
    Stored values may legitimately be ``None`` (e.g. an unset max model length).
    """

    def __init__(self) -> None:
        self._values: dict[ContextKey, Any] = {}

    def set(self, key: ContextKey, value: Any, confirm: ConfirmOverwrite | None = None) -> None:
        """Record a value, refusing silent overwrites."""
        if key in self._values:
            current = self._values[key]
            if current == value:
                return
            if confirm is None or not confirm(key, current, value):
                raise ContextConflictError(
                    f"Refusing to overwrite '{key}' ({current!r} -> {value!r}) "
                    "without operator confirmation"
                )
        self._values[key] = value

    def get(self, key: ContextKey, default: Any = None) -> Any:
        return self._values.get(key, default)

    def require(self, key: ContextKey) -> Any:
        """Return a value that an earlier stage must have written."""
        try:
            return self._values[key]
        except KeyError:
            raise MissingContextValueError(f"No value recorded for '{key}'") from None

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[ContextKey]:
        return iter(self._values)

    def keys(self) -> frozenset[ContextKey]:
        return frozenset(self._values)

    def snapshot(self) -> MappingProxyType:
        """Read-only view of the current values."""
        return MappingProxyType(dict(self._values))
