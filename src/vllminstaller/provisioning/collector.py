"""Interactive collection of the engine launch parameters."""

from typing import Any

import structlog
from pydantic import ValidationError

from vllminstaller.config.models import ServerOptions
from vllminstaller.provisioning.context import ContextKey, ProvisioningContext
from vllminstaller.provisioning.prompts import Prompter

logger = structlog.get_logger(__name__)

# Prompt order is part of the operator experience; keep it stable
OPTION_PROMPTS: list[tuple[str, str]] = [
    ("host", "Server bind host"),
    ("port", "Server port"),
    ("gpu_memory_utilization", "GPU memory utilization (0-1]"),
    ("tensor_parallel_size", "Tensor parallel size (number of GPUs)"),
    ("max_model_len", "Maximum model length ('auto' lets vLLM decide)"),
    ("dtype", "Precision (auto, half, float16, bfloat16, float, float32)"),
]

UNSET_ANSWERS = ("auto", "none")

OPTION_KEYS: dict[str, ContextKey] = {
    "host": ContextKey.HOST,
    "port": ContextKey.PORT,
    "gpu_memory_utilization": ContextKey.GPU_MEMORY_UTILIZATION,
    "tensor_parallel_size": ContextKey.TENSOR_PARALLEL_SIZE,
    "max_model_len": ContextKey.MAX_MODEL_LEN,
    "dtype": ContextKey.DTYPE,
}


def _display_default(value: Any) -> str:
    return "auto" if value is None else str(value)


def _validation_message(error: ValidationError) -> str:
    return "; ".join(e["msg"] for e in error.errors())


def collect(defaults: ServerOptions, prompter: Prompter | None) -> ServerOptions:
    """Gather launch parameters, offering each default in turn.

    An empty answer keeps the default. Answers that fail validation are reported
    and asked again, so this never raises for bad input. Without a prompter
    (non-interactive install) the defaults are returned unchanged.
    """
    if prompter is None:
        return defaults

    values = defaults.model_dump()
    for field, label in OPTION_PROMPTS:
        while True:
            answer = prompter.ask(label, _display_default(values[field])).strip()
            if not answer:
                break

            candidate: Any = answer
            if field == "max_model_len" and answer.lower() in UNSET_ANSWERS:
                candidate = None

            try:
                validated = ServerOptions.model_validate({**values, field: candidate})
            except ValidationError as e:
                prompter.warn(f"Invalid value '{answer}': {_validation_message(e)}")
                continue

            values[field] = getattr(validated, field)
            break

    options = ServerOptions.model_validate(values)
    logger.info("Server options collected", **options.model_dump())
    return options


def record_options(context: ProvisioningContext, options: ServerOptions) -> None:
    for field, key in OPTION_KEYS.items():
        context.set(key, getattr(options, field))


def options_from_context(context: ProvisioningContext) -> ServerOptions:
    """Rebuild the launch parameters recorded by the configure stage."""
    return ServerOptions.model_validate(
        {field: context.require(key) for field, key in OPTION_KEYS.items()}
    )
