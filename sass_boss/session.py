"""Compile session: success/failure policy around a Pipeline."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from .assets import AssetRegistry
from .config import Config
from .models import CompileTarget, ErrorReport, SessionState, SessionStatus
from .notify import LogNotifier, Notification, Notifier, send
from .pipeline import Pipeline

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1


class WatchController:
    """Decide how many pipeline passes a session makes.

    The first pass always compiles once. With watch enabled a second pass
    starts node-sass in its own --watch mode, which recompiles on every
    change until the session is stopped.
    """

    def __init__(self, enabled: bool):
        self.enabled = enabled

    def passes(self) -> list[bool]:
        return [False, True] if self.enabled else [False]


class CompileSession:
    def __init__(
        self,
        target: CompileTarget,
        config: Config,
        assets: AssetRegistry | None = None,
        notifier: Notifier | None = None,
    ):
        self.target = target
        self.config = config
        self.notifier = notifier or LogNotifier()
        self.watcher = WatchController(config.watch)
        self.pipeline: Pipeline | None = None
        self.state = SessionState(
            watch_enabled=config.watch,
            intermediate_path=(
                Path(target.intermediate_path) if config.autoprefixer_enabled else None
            ),
        )
        self.assets = assets if assets is not None else AssetRegistry()
        self.assets.add(target.output_path)

    @property
    def success_count(self) -> int:
        return self.state.success_count

    async def run(self) -> int:
        """Compile, and keep watching if configured. Returns the exit status."""
        for watch in self.watcher.passes():
            self.pipeline = Pipeline(self.config)
            self._enter(SessionStatus.compiling)
            logger.info(
                f"Compiling {self.target.source_path} -> {self.target.output_path}"
                + (" (watching)" if watch else "")
            )
            await self.pipeline.run(
                self.target,
                watch=watch,
                on_success=self.on_success,
                on_fail=self.on_fail,
                on_change=self.on_change,
            )
            if self.state.status is SessionStatus.terminated:
                return EXIT_FAILURE
        return 0

    def stop(self):
        if self.pipeline is not None:
            self.pipeline.stop()

    def on_change(self, output: str):
        """node-sass noticed an edit: a finished build is being redone."""
        if self.state.status in (SessionStatus.succeeded, SessionStatus.failed):
            self._enter(SessionStatus.compiling)

    def on_success(self, output: str):
        if self.state.status is SessionStatus.terminated:
            logger.debug("Ignoring success after termination")
            return

        if output:
            click.echo("\n")
            click.echo(output)

        self.state.success_count += 1
        self._enter(SessionStatus.succeeded)

        # The initial build is not announced, only recompiles are.
        if (
            self.config.notifications
            and self.config.notify_on_success
            and self.state.success_count > 1
        ):
            send(self.notifier, Notification(
                title=self.config.notification_title,
                message="Sass Compilation Successful",
                icon=self.config.notification_icon,
            ))

    def on_fail(self, output: str):
        if self.state.status is SessionStatus.terminated:
            logger.debug("Ignoring failure after termination")
            return

        report = ErrorReport.parse(output)
        header, *details = report.banner()
        click.echo("\n")
        click.echo(header, err=True)
        for line in details:
            click.echo(line)

        if self.config.notifications:
            send(self.notifier, Notification(
                title=self.config.notification_title,
                subtitle="Sass Compilation Failed",
                message=report.message,
                icon=self.config.notification_icon,
            ))

        self._enter(SessionStatus.failed)
        if not self.state.watch_enabled:
            self._enter(SessionStatus.terminated)
            self.stop()

    def _enter(self, status: SessionStatus):
        if self.state.status is not status:
            logger.debug(f"Session {self.state.status.value} -> {status.value}")
        self.state.status = status
