"""Child process runner with output classification."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator

from .models import EventKind, LifecycleEvent, StageSpec, StreamName

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class Markers:
    """Phrases that turn a chunk of tool output into a lifecycle event."""
    success: str
    error: str = "Error"
    error_streams: frozenset[StreamName] = frozenset({StreamName.stdout, StreamName.stderr})


# node-sass prints informational lines on stdout that can mention "Error";
# only its stderr carries real failures.
SASS_MARKERS = Markers(success="Wrote CSS", error_streams=frozenset({StreamName.stderr}))
POSTCSS_MARKERS = Markers(success="Finished")


def classify(
    chunk: bytes, markers: Markers, stream: StreamName = StreamName.stderr
) -> LifecycleEvent:
    """Classify one chunk of output. Chunks are never buffered together,
    so a marker split across two reads is not seen."""
    text = chunk.decode("utf-8", errors="replace")
    if markers.success in text:
        return LifecycleEvent(kind=EventKind.success, text="", stream=stream)
    if stream in markers.error_streams and markers.error in text:
        return LifecycleEvent(kind=EventKind.error, text=text, stream=stream)
    return LifecycleEvent(kind=EventKind.change, text=text, stream=stream)


class ProcessStage:
    """One spawned tool process whose output is streamed as lifecycle events."""

    def __init__(self, name: str, spec: StageSpec, markers: Markers):
        self.name = name
        self.spec = spec
        self.markers = markers
        self.proc: asyncio.subprocess.Process | None = None
        self.saw_error = False

    async def start(self):
        if self.spec.uses_shell:
            self.proc = await asyncio.create_subprocess_shell(
                self.spec.command_line(),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        else:
            self.proc = await asyncio.create_subprocess_exec(
                *self.spec.argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        logger.info(f"Started {self.name} (pid={self.proc.pid}): {self.spec.command_line()}")

    @property
    def running(self) -> bool:
        return self.proc is not None and self.proc.returncode is None

    async def events(self) -> AsyncIterator[LifecycleEvent]:
        """Yield classified events until both output streams are closed.

        Each stream has its own reader feeding a shared channel, so events
        from one stream keep their order while the two streams interleave
        freely.
        """
        if self.proc is None:
            await self.start()

        channel: asyncio.Queue[tuple[StreamName, bytes | None]] = asyncio.Queue()
        readers = [
            asyncio.create_task(self._pump(StreamName.stdout, self.proc.stdout, channel)),
            asyncio.create_task(self._pump(StreamName.stderr, self.proc.stderr, channel)),
        ]
        open_streams = len(readers)
        try:
            while open_streams:
                stream, chunk = await channel.get()
                if chunk is None:
                    open_streams -= 1
                    continue
                event = classify(chunk, self.markers, stream)
                if event.kind is EventKind.error:
                    self.saw_error = True
                yield event
        finally:
            for reader in readers:
                reader.cancel()
            if open_streams:
                self.stop()

    async def _pump(
        self,
        stream: StreamName,
        reader: asyncio.StreamReader,
        channel: asyncio.Queue[tuple[StreamName, bytes | None]],
    ):
        try:
            while True:
                chunk = await reader.read(CHUNK_SIZE)
                if not chunk:
                    break
                await channel.put((stream, chunk))
        finally:
            channel.put_nowait((stream, None))

    async def wait(self) -> int:
        returncode = await self.proc.wait()
        if returncode and not self.saw_error:
            # The tool died without reporting anything we recognise.
            logger.warning(f"{self.name} exited with status {returncode} without an error event")
        else:
            logger.debug(f"{self.name} exited with status {returncode}")
        return returncode

    def stop(self):
        if self.running:
            try:
                self.proc.terminate()
            except ProcessLookupError:
                pass
