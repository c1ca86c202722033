"""Stage definition and static verification of a stage sequence."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from vllminstaller.errors import StagePlanError
from vllminstaller.provisioning.context import ContextKey, ProvisioningContext


@dataclass(frozen=True)
class Stage:
    """A named, ordered unit of provisioning work.

    Attributes:
        name: Short identifier used in logs
        description: Operator-facing step title
        run: Callable performing the work against the shared context
        reads: Keys that must be present before the stage runs
        writes: Keys the stage is allowed to record
        enabled: Optional predicate evaluated just before the stage runs;
            a disabled stage is skipped and writes nothing
    """

    name: str
    description: str
    run: Callable[[ProvisioningContext], None]
    reads: frozenset[ContextKey] = field(default_factory=frozenset)
    writes: frozenset[ContextKey] = field(default_factory=frozenset)
    enabled: Callable[[ProvisioningContext], bool] | None = None

    def is_enabled(self, context: ProvisioningContext) -> bool:
        return self.enabled is None or self.enabled(context)


def verify_stage_plan(stages: Iterable[Stage], seeded: Iterable[ContextKey]) -> None:
    """Check that every read is satisfied and every key has a single writer.

    Args:
        stages: Stages in execution order
        seeded: Keys present in the context before the first stage

    Raises:
        StagePlanError: On a read with no earlier writer or a key with two writers
    """
    available = set(seeded)
    writers: dict[ContextKey, str] = {key: "<seed>" for key in available}
    seen_names: set[str] = set()

    for stage in stages:
        if stage.name in seen_names:
            raise StagePlanError(f"Duplicate stage name '{stage.name}'")
        seen_names.add(stage.name)

        missing = sorted(stage.reads - available)
        if missing:
            raise StagePlanError(
                f"Stage '{stage.name}' reads {', '.join(missing)} before any stage writes them"
            )

        for key in sorted(stage.writes):
            if key in writers:
                raise StagePlanError(
                    f"Stage '{stage.name}' and '{writers[key]}' both write '{key}'"
                )
            writers[key] = stage.name
        available |= stage.writes
