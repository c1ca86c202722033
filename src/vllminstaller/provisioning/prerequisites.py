"""Host suitability checks run before anything is installed."""

from dataclasses import dataclass

import structlog

from vllminstaller.errors import (
    DriverMissingError,
    InsufficientCapabilityError,
    UnsupportedOSError,
)
from vllminstaller.provisioning.context import ContextKey, ProvisioningContext
from vllminstaller.system.host_probe import HostProbe

logger = structlog.get_logger(__name__)

SUPPORTED_DISTRIBUTION = "Ubuntu"
DRIVER_QUERY_TOOL = "nvidia-smi"


@dataclass(frozen=True)
class Capabilities:
    """What the prerequisite check learned about the host."""

    os_name: str
    gpu_name: str
    compute_capability: str


def parse_compute_capability(value: str) -> tuple[int, int] | None:
    """Parse a MAJOR.MINOR compute capability string.

    Returns:
        (major, minor) tuple, or None if the value is not in that form
    """
    major, sep, minor = value.strip().partition(".")
    if not sep:
        minor = "0"
    if not (major.isdigit() and minor.isdigit()):
        return None
    return int(major), int(minor)


def check_prerequisites(probe: HostProbe, minimum: str = "7.0") -> Capabilities:
    """Confirm the host is Ubuntu with an NVIDIA GPU of sufficient capability.

    Only the first GPU reported by the driver is checked. Nothing on the host is
    modified, so a failure here leaves the system untouched.

    Raises:
        UnsupportedOSError: Not an Ubuntu host
        DriverMissingError: nvidia-smi is unavailable or reports no GPU
        InsufficientCapabilityError: Compute capability below ``minimum`` or unparseable
    """
    os_release = probe.read_os_release()
    os_name = os_release.get("PRETTY_NAME") or os_release.get("NAME", "")
    distribution_fields = (os_release.get("NAME", ""), os_release.get("ID", ""))
    if not any(SUPPORTED_DISTRIBUTION.lower() in field.lower() for field in distribution_fields):
        raise UnsupportedOSError(
            f"This installer is designed for {SUPPORTED_DISTRIBUTION}"
            f" (detected: {os_name or 'unknown'}). Aborting."
        )

    if probe.which(DRIVER_QUERY_TOOL) is None:
        raise DriverMissingError(
            "NVIDIA driver not found. Please install the appropriate NVIDIA drivers for your GPU."
        )
    logger.info("NVIDIA drivers found")

    gpus = probe.query_gpus()
    if not gpus:
        raise DriverMissingError(f"{DRIVER_QUERY_TOOL} did not report any GPU.")
    gpu = gpus[0]

    reported = parse_compute_capability(gpu.compute_capability)
    required = parse_compute_capability(minimum)
    if reported is None or required is None or reported < required:
        raise InsufficientCapabilityError(gpu.compute_capability or "unknown", minimum)

    logger.info(
        "GPU compute capability is compatible",
        gpu=gpu.name,
        compute_capability=gpu.compute_capability,
    )
    return Capabilities(
        os_name=os_name, gpu_name=gpu.name, compute_capability=gpu.compute_capability
    )


def record_capabilities(context: ProvisioningContext, capabilities: Capabilities) -> None:
    context.set(ContextKey.OS_NAME, capabilities.os_name)
    context.set(ContextKey.GPU_NAME, capabilities.gpu_name)
    context.set(ContextKey.COMPUTE_CAPABILITY, capabilities.compute_capability)
