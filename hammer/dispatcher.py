"""Mapping of user commands and targets to ordered component operations."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Sequence

from .components import get_component
from .config import HammerConfig
from .context import Context
from .errors import ConfigurationError
from .hooks import HOOKS


class OperationKind(str, Enum):
    CHECKOUT = "checkout"
    BUILD = "build"
    HOOK = "hook"


@dataclass(frozen=True, slots=True)
class Operation:
    kind: OperationKind
    component: str | None = None
    hook: str | None = None
    log_name: str | None = None
    variant_prefix: str = ""
    configure_args: tuple[str, ...] = ()
    optional: bool = False

    @property
    def description(self) -> str:
        if self.kind is OperationKind.HOOK:
            return f"hook {self.hook}"
        return f"{self.kind.value} {self.component}"


def checkout_operation(name: str) -> Operation:
    return Operation(OperationKind.CHECKOUT, component=name)


def build_operation(name: str, **kwargs) -> Operation:
    return Operation(OperationKind.BUILD, component=name, **kwargs)


def hook_operation(name: str, *, optional: bool = False, variant_prefix: str = "") -> Operation:
    return Operation(OperationKind.HOOK, hook=name, optional=optional, variant_prefix=variant_prefix)


CHECKOUT_LIBS: tuple[str, ...] = ("varconf", "atlas-cpp", "wfmath", "eris", "libwfut", "mercator")
BUILD_LIBS: tuple[str, ...] = ("varconf", "wfmath", "atlas-cpp", "mercator", "eris", "libwfut")

_CHECKOUT_TARGETS = ("all", "libs", "worlds", "ember", "webember", "cyphesis", "metaserver-ng")
_BUILD_TARGETS = ("all", "libs", "worlds", "ember", "webember", "cyphesis", "metaserver-ng", "ember_apk")

WEBEMBER_PREFIX = "web"


class TargetDispatcher:
    def __init__(self, config: HammerConfig) -> None:
        self._config = config

    def dispatch(self, command: str, target: str) -> List[Operation]:
        if command == "checkout":
            return self._checkout_operations(target)
        if command == "build":
            return self._build_operations(target)
        raise ConfigurationError(f"Unknown command '{command}'")

    def _checkout_operations(self, target: str) -> List[Operation]:
        if target not in _CHECKOUT_TARGETS:
            raise ConfigurationError(
                f"Unknown checkout target '{target}'. Available targets: {', '.join(_CHECKOUT_TARGETS)}"
            )
        operations: List[Operation] = []
        if target in ("libs", "all"):
            operations.extend(checkout_operation(name) for name in CHECKOUT_LIBS)
        if target in ("worlds", "all"):
            operations.append(checkout_operation("worlds"))
        if target in ("ember", "webember", "all"):
            operations.append(checkout_operation("ember"))
        if target in ("cyphesis", "all"):
            operations.append(checkout_operation("cyphesis"))
        if target == "metaserver-ng":
            operations.append(checkout_operation("metaserver-ng"))
        if target in ("webember", "all") and not self._config.host.is_mingw:
            operations.append(checkout_operation("FireBreath"))
            operations.append(checkout_operation("webember"))
        return operations

    def _build_operations(self, target: str) -> List[Operation]:
        if target not in _BUILD_TARGETS:
            raise ConfigurationError(
                f"Unknown build target '{target}'. Available targets: {', '.join(_BUILD_TARGETS)}"
            )
        operations: List[Operation] = []
        if target in ("libs", "all"):
            operations.extend(build_operation(name) for name in BUILD_LIBS)
        if target in ("worlds", "all"):
            operations.append(build_operation("worlds"))
        if target in ("ember", "all"):
            operations.append(build_operation("ember"))
            operations.append(hook_operation("ember-media", optional=True))
        if target in ("cyphesis", "all"):
            operations.append(build_operation("cyphesis"))
            operations.append(hook_operation("cyphesis-post-install"))
        if target == "metaserver-ng":
            operations.append(
                build_operation("metaserver-ng", configure_args=("--sysconfdir={prefix}/etc/metaserver-ng",))
            )
        if target in ("webember", "all"):
            operations.append(
                build_operation(
                    "ember",
                    log_name="webember",
                    variant_prefix=WEBEMBER_PREFIX,
                    configure_args=("--enable-webember",),
                )
            )
            operations.append(hook_operation("ember-media", optional=True, variant_prefix=WEBEMBER_PREFIX))
            operations.append(hook_operation("webember-plugin", variant_prefix=WEBEMBER_PREFIX))
        if target == "ember_apk":
            if self._config.target_os != "android":
                raise ConfigurationError("Target 'ember_apk' requires --cross-compile=android")
            operations.append(hook_operation("android-bundle"))
        return operations


def run_operations(ctx: Context, operations: Sequence[Operation]) -> None:
    """Run ``operations`` in order, stopping at the first fatal error."""

    for operation in operations:
        run_operation(ctx, operation)


def run_operation(ctx: Context, operation: Operation) -> None:
    op_ctx = ctx
    if operation.variant_prefix:
        op_ctx = ctx.for_variant(ctx.config.variant.with_prefix(operation.variant_prefix))

    if operation.kind is OperationKind.HOOK:
        hook = HOOKS[operation.hook or ""]
        if operation.optional:
            _run_optional(op_ctx, operation, hook)
        else:
            hook(op_ctx)
        return

    component = get_component(operation.component or "")
    if operation.kind is OperationKind.CHECKOUT:
        ctx.console.info(f"  {component.label}...")
        revision = ctx.versions.resolve(component.name)
        ctx.sync.sync(
            component,
            component.owner,
            revision,
            parent_dir=ctx.layout.source / component.group,
        )
        ctx.console.info("  Done.")
        return

    ctx.console.info(f"  {component.label}...")
    configure_args = [arg.format(prefix=ctx.layout.prefix) for arg in operation.configure_args]
    plan = ctx.planner.plan(
        component,
        ctx.config,
        variant=op_ctx.layout.variant,
        log_name=operation.log_name,
        extra_configure_args=configure_args,
    )
    if not ctx.config.dry_run:
        (ctx.layout.log_dir / plan.log_name).mkdir(parents=True, exist_ok=True)
    ctx.phases.execute(plan, prefix=ctx.layout.prefix)
    ctx.console.info("  Done.")


def _run_optional(ctx: Context, operation: Operation, hook) -> None:
    result = hook(ctx)
    if result is False:
        ctx.console.debug(f"Optional step {operation.description} did not complete")


_BANNERS: Dict[str, tuple[str, str]] = {
    "checkout": ("Checking out sources...", "Checkout complete."),
    "build": ("Building sources...", "Build complete."),
}


def run_target(ctx: Context, command: str, target: str) -> List[Operation]:
    """Validate ``target`` and run its operations between the command's progress banners."""

    operations = TargetDispatcher(ctx.config).dispatch(command, target)
    start, finish = _BANNERS[command]
    ctx.console.info(start)
    run_operations(ctx, operations)
    ctx.console.info(finish)
    return operations
