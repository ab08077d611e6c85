"""Anti-cheat extension: bootstraps the engine against a host runtime.

``InterlockExtension`` is what the host's extension registry sees. On
construction it installs every binding of the policy on the host object
graph. A binding that cannot be installed (owner missing, operation missing,
already wrapped) is logged and skipped; the others still go in.

The descriptor returned by ``get_info`` is metadata only: an id, a name,
colours and one reporter block (``checkStatus``). It carries no policy.

Example:
    extension = InterlockExtension.from_files(vm)
    registry.register(extension)
    ...
    extension.shutdown()   # restores every original operation
"""

from __future__ import annotations

__all__ = [
    "BlockDescriptor",
    "ExtensionDescriptor",
    "InterlockExtension",
    "build_engine",
    "resolve_owner",
]

from pathlib import Path
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field

from interlock.config import AppConfig, get_config_path
from interlock.constants import EXTENSION_ID, EXTENSION_NAME
from interlock.exceptions import HostUnavailableError, SetupError
from interlock.pdp.policy import PolicyConfig, create_default_policy
from interlock.pep.engine import InterceptionEngine, OperationBinding
from interlock.pep.notifier import NotificationSink, create_notification_sink
from interlock.telemetry.audit.decision_logger import DecisionEventLogger, create_decision_logger
from interlock.telemetry.system.system_logger import configure_system_logger_file, get_system_logger
from interlock.utils.policy import compute_policy_checksum, get_policy_path, load_policy

_system_logger = get_system_logger()


# =============================================================================
# Descriptor
# =============================================================================


class BlockDescriptor(BaseModel):
    """One query-style capability exposed to the host."""

    opcode: str
    block_type: Literal["reporter", "boolean", "command"] = Field(
        default="reporter", serialization_alias="blockType"
    )
    text: str
    disable_monitor: bool = Field(default=False, serialization_alias="disableMonitor")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ExtensionDescriptor(BaseModel):
    """Metadata handed to the host extension registry."""

    id: str = EXTENSION_ID
    name: str = EXTENSION_NAME
    color1: str = "#8A2BE2"
    color2: str = "#9370DB"
    blocks: list[BlockDescriptor] = Field(
        default_factory=lambda: [
            BlockDescriptor(
                opcode="checkStatus",
                block_type="reporter",
                text="Anti-Cheat Status",
                disable_monitor=True,
            )
        ]
    )

    model_config = ConfigDict(frozen=True)

    def to_host_dict(self) -> dict[str, Any]:
        """Descriptor in the registry's camelCase shape."""
        return self.model_dump(by_alias=True)


class ExtensionRegistry(Protocol):
    def register(self, extension: Any) -> Any: ...


# =============================================================================
# Bootstrap helpers
# =============================================================================


def resolve_owner(host: Any, owner_path: str) -> Any:
    """Walk a dotted attribute path from the host root.

    Args:
        host: Host root object (e.g. the VM).
        owner_path: Dotted path such as "runtime.ccw_api". Empty means host.

    Returns:
        The owner object.

    Raises:
        HostUnavailableError: If a segment is missing or None.
    """
    owner = host
    if not owner_path:
        return owner
    walked: list[str] = []
    for part in owner_path.split("."):
        walked.append(part)
        owner = getattr(owner, part, None)
        if owner is None:
            raise HostUnavailableError(
                f"Host object '{'.'.join(walked)}' is not available",
                owner=owner_path,
            )
    return owner


def build_engine(
    config: AppConfig,
    *,
    sink: NotificationSink | None = None,
    policy_version: str | None = None,
) -> InterceptionEngine:
    """Create an engine wired to the configured sink and log files.

    Log files that cannot be opened are reported on the system logger; the
    engine still works with console logging only.
    """
    log_cfg = config.logging
    system_logger = get_system_logger()
    system_logger.setLevel(log_cfg.log_level)
    for handler in system_logger.handlers:
        if not hasattr(handler, "baseFilename"):
            handler.setLevel(log_cfg.log_level)
    configure_system_logger_file(log_cfg.system_log_path)

    decisions = None
    if log_cfg.audit_enabled:
        try:
            decisions = create_decision_logger(log_cfg.decisions_log_path)
        except OSError as e:
            system_logger.error(
                {
                    "event": "decision_log_unavailable",
                    "message": f"Cannot open decision log {log_cfg.decisions_log_path}: {e}",
                    "error_type": type(e).__name__,
                }
            )

    return InterceptionEngine(
        sink or create_notification_sink(config.notifications),
        decision_logger=DecisionEventLogger(
            logger=decisions,
            system_logger=system_logger,
            policy_version=policy_version,
        ),
        on_duplicate=config.engine.on_duplicate,
    )


# =============================================================================
# Extension
# =============================================================================


class InterlockExtension:
    """Host-facing extension object.

    Attributes:
        host: Host root object.
        policy: Policy that was installed.
        engine: The interception engine.
        installed: Bindings installed successfully, by binding id.
        failed: Setup errors, by binding id.
    """

    def __init__(
        self,
        host: Any,
        policy: PolicyConfig | None = None,
        *,
        engine: InterceptionEngine | None = None,
        descriptor: ExtensionDescriptor | None = None,
    ) -> None:
        self.host = host
        self.policy = policy or create_default_policy()
        self.engine = engine or InterceptionEngine()
        self.descriptor = descriptor or ExtensionDescriptor()
        self.installed: dict[str, OperationBinding] = {}
        self.failed: dict[str, SetupError] = {}
        self._active = False
        self._install_all()

    @classmethod
    def from_files(
        cls,
        host: Any,
        *,
        config_path: Path | None = None,
        policy_path: Path | None = None,
        sink: NotificationSink | None = None,
    ) -> "InterlockExtension":
        """Bootstrap from config.json and policy.json.

        A missing config file means defaults; a missing policy file means the
        built-in anti-cheat policy. Files that exist but are invalid raise.

        Raises:
            ConfigurationError: If a file exists but is invalid.
        """
        config_path = config_path or get_config_path()
        config = AppConfig.load_from_files(config_path) if config_path.exists() else AppConfig()

        policy_path = policy_path or get_policy_path()
        if policy_path.exists():
            policy = load_policy(policy_path)
            policy_version = compute_policy_checksum(policy_path)
        else:
            policy = create_default_policy()
            policy_version = "builtin"

        engine = build_engine(config, sink=sink, policy_version=policy_version)
        return cls(host, policy, engine=engine)

    def _install_all(self) -> None:
        for op in self.policy.operations:
            try:
                owner = resolve_owner(self.host, op.owner)
                binding = self.engine.install(owner, op.operation, op, owner_path=op.owner or "host")
            except SetupError as e:
                if e.operation is None:
                    e.operation = op.operation
                self.failed[op.binding_id] = e
                _system_logger.error({"event": "setup_failed", **e.to_log_dict()})
                continue
            self.installed[op.binding_id] = binding

        self._active = bool(self.installed)
        _system_logger.info(
            {
                "event": "extension_initialized",
                "message": (
                    f"Anti-cheat active: {len(self.installed)} operation(s) protected, "
                    f"{len(self.failed)} failed"
                ),
                "installed": sorted(self.installed),
                "failed": sorted(self.failed),
            }
        )

    def get_info(self) -> dict[str, Any]:
        """Descriptor for the host extension registry."""
        return self.descriptor.to_host_dict()

    def check_status(self) -> str:
        """Reporter block: "Active" while any operation is protected."""
        return "Active" if self._active else "Inactive"

    # Host registries call blocks by opcode
    checkStatus = check_status

    def register(self, registry: ExtensionRegistry) -> Any:
        """Hand this extension to the host's extension registry."""
        return registry.register(self)

    def shutdown(self) -> int:
        """Restore every original operation. Returns how many were restored."""
        count = self.engine.uninstall_all()
        self.installed.clear()
        self._active = False
        _system_logger.info(
            {
                "event": "extension_shutdown",
                "message": f"Anti-cheat stopped, {count} operation(s) restored",
            }
        )
        return count
