"""node-sass → postcss pipeline with a file-based hand-off."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable

from .config import Config
from .models import CompileTarget, EventKind, LifecycleEvent, StageSpec
from .runner import POSTCSS_MARKERS, SASS_MARKERS, ProcessStage

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], None]


class Pipeline:
    """Run node-sass, then optionally postcss on its intermediate output."""

    def __init__(self, config: Config):
        self.config = config
        self.sass: ProcessStage | None = None
        self.postcss: ProcessStage | None = None
        self._postcss_tasks: list[asyncio.Task] = []
        self._stopped = False

    def sass_spec(self, target: CompileTarget, watch: bool, stage2_enabled: bool) -> StageSpec:
        output = target.intermediate_path if stage2_enabled else target.output_path
        args = [
            target.source_path,
            output,
            f"--precision={self.config.precision}",
            "--output-style=" + ("compressed" if self.config.production else "expanded"),
        ]
        if watch:
            args.append("--watch")
        for path in target.include_paths:
            args.append(f"--include-path={path}")
        if target.importer:
            args += ["--importer", target.importer]
        if self.config.source_maps and not self.config.production:
            args.append("--source-map-embed")

        return StageSpec(
            executable=str(self.config.tool_path(self.config.sass_cmd)),
            arguments=tuple(args),
            uses_shell=self.config.use_shell,
        )

    def postcss_spec(self, target: CompileTarget, watch: bool) -> StageSpec:
        args = [
            target.intermediate_path,
            "-o", target.output_path,
            "--config", str(self.config.postcss_config_path),
            "--verbose",
        ]
        # postcss can't share node-sass's native watcher on the .dist file
        if watch:
            args += ["--watch", "--poll"]

        return StageSpec(
            executable=str(self.config.tool_path(self.config.postcss_cmd)),
            arguments=tuple(args),
            uses_shell=self.config.use_shell,
        )

    def commands(
        self, target: CompileTarget, watch: bool, stage2_enabled: bool | None = None
    ) -> list[StageSpec]:
        if stage2_enabled is None:
            stage2_enabled = self.config.autoprefixer_enabled
        specs = [self.sass_spec(target, watch, stage2_enabled)]
        if stage2_enabled:
            specs.append(self.postcss_spec(target, watch))
        return specs

    async def run(
        self,
        target: CompileTarget,
        *,
        watch: bool,
        on_success: OutputCallback,
        on_fail: OutputCallback,
        on_change: OutputCallback | None = None,
        stage2_enabled: bool | None = None,
    ):
        """Run until every stage has exited or stop() is called.

        In watch mode node-sass never exits on its own, so this only
        returns after stop(). on_change receives node-sass output that is
        neither a success nor an error, e.g. the "=> changed" line that
        starts a recompile.
        """
        if stage2_enabled is None:
            stage2_enabled = self.config.autoprefixer_enabled

        self.sass = ProcessStage("node-sass", self.sass_spec(target, watch, stage2_enabled), SASS_MARKERS)
        try:
            async for event in self.sass.events():
                if event.kind is EventKind.error:
                    on_fail(event.text)
                elif event.kind is EventKind.success:
                    if not stage2_enabled:
                        on_success(event.text)
                    elif self._stopped:
                        logger.debug("Pipeline stopped, not starting postcss")
                    elif self.postcss is not None and self.postcss.running:
                        logger.debug("postcss already watching the intermediate file")
                    else:
                        self.postcss = ProcessStage("postcss", self.postcss_spec(target, watch), POSTCSS_MARKERS)
                        await self.postcss.start()
                        self._postcss_tasks.append(asyncio.create_task(
                            self._run_postcss(self.postcss, target, on_success, on_fail)
                        ))
                else:
                    self._change("node-sass", event, on_change)
            await self.sass.wait()
        except BaseException:
            # cancelled or failed to spawn: take any running postcss down too
            self.stop()
            raise
        finally:
            self.sass.stop()
            results = await asyncio.gather(*self._postcss_tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    raise result

    async def _run_postcss(
        self,
        stage: ProcessStage,
        target: CompileTarget,
        on_success: OutputCallback,
        on_fail: OutputCallback,
    ):
        try:
            async for event in stage.events():
                if event.kind is EventKind.error:
                    on_fail(event.text)
                elif event.kind is EventKind.success:
                    on_success(event.text)
                else:
                    self._change("postcss", event)
            await stage.wait()
        finally:
            stage.stop()
            remove_intermediate(target)

    def _change(self, name: str, event: LifecycleEvent, on_change: OutputCallback | None = None):
        if event.text.strip():
            logger.debug(f"{name} [{event.stream.value}]: {event.text.strip()}")
        if on_change is not None:
            on_change(event.text)

    def stop(self):
        self._stopped = True
        for stage in (self.sass, self.postcss):
            if stage is not None:
                stage.stop()


def remove_intermediate(target: CompileTarget):
    """Delete the .dist hand-off file. Failures are ignored: the file may
    never have been written, or the tool may still hold it."""
    try:
        Path(target.intermediate_path).unlink()
    except OSError as e:
        logger.debug(f"Could not remove {target.intermediate_path}: {e}")
