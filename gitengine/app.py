"""Bootstrap: wires all components together."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import structlog

from gitengine.core.activity import ActivityRecorder
from gitengine.core.config import GitEngineConfig
from gitengine.core.events import EventBus
from gitengine.core.identity import IdentityContext
from gitengine.git.credentials import CredentialInjector
from gitengine.git.executor import GitExecutor
from gitengine.git.service import GitService
from gitengine.git.sync import SyncOrchestrator

logger = structlog.get_logger()


class GitEngine:
    """Per-session handle bundling the executor, operations and protocols."""

    def __init__(
        self,
        config: GitEngineConfig,
        event_bus: EventBus,
        executor: GitExecutor,
        service: GitService,
        sync: SyncOrchestrator,
        activity: ActivityRecorder | None = None,
    ) -> None:
        self.config = config
        self.event_bus = event_bus
        self.executor = executor
        self.service = service
        self.sync = sync
        self.activity = activity

    @property
    def identity(self) -> IdentityContext:
        return self.executor.identity

    def set_identity(self, name: str | None, email: str | None) -> None:
        self.executor.set_identity(name, email)

    def clear_identity(self) -> None:
        self.executor.clear_identity()


def _configure_logging(config: GitEngineConfig) -> None:
    """Set up structlog with console output and optional rotating JSON file handler."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(config.log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(),
        )
    )
    root_logger.addHandler(console_handler)

    if config.log_dir is not None:
        log_dir = Path(config.log_dir).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "gitengine.log",
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
        )
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
            )
        )
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_engine(
    config: GitEngineConfig | None = None,
    event_bus: EventBus | None = None,
    *,
    configure_logging: bool = True,
) -> GitEngine:
    if config is None:
        config = GitEngineConfig()

    if configure_logging:
        _configure_logging(config)

    event_bus = event_bus or EventBus()

    activity = None
    if config.activity_log_path is not None:
        activity = ActivityRecorder(config.activity_log_path)
        activity.attach(event_bus)

    identity = None
    if config.identity_name or config.identity_email:
        identity = IdentityContext(
            name=config.identity_name, email=config.identity_email
        )

    executor = GitExecutor(
        config,
        event_bus=event_bus,
        injector=CredentialInjector(config.askpass_dir),
        identity=identity,
    )
    service = GitService(executor, config)
    sync = SyncOrchestrator(service, config)

    logger.info(
        "engine_built",
        git_binary=config.git_binary,
        has_identity=identity is not None,
        activity_log=str(config.activity_log_path) if activity else None,
        log_level=config.log_level,
    )

    return GitEngine(
        config=config,
        event_bus=event_bus,
        executor=executor,
        service=service,
        sync=sync,
        activity=activity,
    )
