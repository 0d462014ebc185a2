"""Capability registry: phase ordering, handler registration, and execution."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Protocol

import pulumi

from scheduled_task.capabilities.context import CapabilityContext


class Phase(IntEnum):
    """Execution phase order for capabilities (lower runs first)."""

    FOUNDATION = 0
    INFRASTRUCTURE = 1
    COMPUTE = 2
    TRIGGER = 3


class CapabilityHandler(Protocol):
    """Protocol for capability handler functions."""

    def __call__(self, section_config: dict[str, Any], ctx: CapabilityContext) -> None:
        ...


@dataclass
class CapabilityDef:
    """Registered capability: handler, phase, and optional dependencies."""

    handler: Callable[[dict[str, Any], CapabilityContext], None]
    phase: Phase
    requires: list[str]


CAPABILITIES: dict[str, CapabilityDef] = {}


def register(
    name: str,
    phase: Phase,
    requires: list[str] | None = None,
) -> Callable[[CapabilityHandler], CapabilityHandler]:
    """Decorator to register a capability handler in CAPABILITIES."""

    def decorator(fn: CapabilityHandler) -> CapabilityHandler:
        CAPABILITIES[name] = CapabilityDef(
            handler=fn,
            phase=phase,
            requires=requires or [],
        )
        return fn

    return decorator


def execution_order(spec_sections: dict[str, Any]) -> list[str]:
    """Declared capability names sorted by phase (declaration order within a phase).

    Raises:
        RuntimeError: A declared section has no registered handler, or a
            capability requires one that is not declared.
    """
    unknown = [name for name in spec_sections if name not in CAPABILITIES]
    if unknown:
        raise RuntimeError(f"no capability registered for: {', '.join(unknown)}")
    for name in spec_sections:
        missing = [req for req in CAPABILITIES[name].requires if req not in spec_sections]
        if missing:
            raise RuntimeError(
                f"capability {name!r} requires undeclared capabilities: {', '.join(missing)}"
            )
    return sorted(spec_sections, key=lambda name: CAPABILITIES[name].phase)


def run_capabilities(spec_sections: dict[str, Any], ctx: CapabilityContext) -> None:
    """Run every declared capability handler in phase order."""
    for name in execution_order(spec_sections):
        pulumi.log.info(f"Provisioning capability '{name}'")
        CAPABILITIES[name].handler(spec_sections[name], ctx)
