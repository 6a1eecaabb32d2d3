"""Pydantic models for compile targets, stage commands, events and error reports."""

from __future__ import annotations

import json
import re
import shlex
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

# CSI-style terminal control sequences (colors, cursor movement)
ANSI_PATTERN = re.compile(
    r"[\u001b\u009b][\[()#;?]*(?:[0-9]{1,4}(?:;[0-9]{0,4})*)?[0-9A-ORZcf-nqry=><]"
)

UNKNOWN_ERROR = "Unknown error"


class EventKind(str, Enum):
    change = "change"
    success = "success"
    error = "error"


class StreamName(str, Enum):
    stdout = "stdout"
    stderr = "stderr"


class SessionStatus(str, Enum):
    idle = "idle"
    compiling = "compiling"
    succeeded = "succeeded"
    failed = "failed"
    terminated = "terminated"


class CompileTarget(BaseModel):
    """A stylesheet to compile and where the result goes."""
    model_config = ConfigDict(frozen=True)

    source_path: str
    output_path: str
    plugin_options: dict[str, Any] = Field(default_factory=dict)

    @property
    def intermediate_path(self) -> str:
        return f"{self.output_path}.dist"

    @property
    def include_paths(self) -> list[str]:
        return list(self.plugin_options.get("include_paths") or [])

    @property
    def importer(self) -> str | None:
        return self.plugin_options.get("importer")


class StageSpec(BaseModel):
    """Executable and argument vector for one child process."""
    model_config = ConfigDict(frozen=True)

    executable: str
    arguments: tuple[str, ...] = ()
    uses_shell: bool = False

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.arguments]

    def command_line(self) -> str:
        return shlex.join(self.argv)


class LifecycleEvent(BaseModel):
    """One classified chunk of child process output."""
    kind: EventKind
    text: str = ""
    stream: StreamName = StreamName.stdout


class ErrorReport(BaseModel):
    """Failure details decoded from a compiler's error output.

    node-sass writes a JSON object on stderr when it fails; other tools
    write plain (often colored) text. Fields missing from the payload stay
    None so callers can tell "absent" from "empty".
    """
    status: int | None = None
    file: str | None = None
    line: int | None = None
    column: int | None = None
    message: str = UNKNOWN_ERROR
    formatted: str | None = None

    @classmethod
    def parse(cls, raw: str) -> ErrorReport:
        cleaned = ANSI_PATTERN.sub("", raw)
        try:
            data = json.loads(cleaned)
        except ValueError:
            return cls()
        if not isinstance(data, dict):
            return cls()
        try:
            return cls.model_validate(
                {k: v for k, v in data.items() if k in cls.model_fields}
            )
        except ValidationError:
            return cls()

    def banner(self, tool: str = "Sass") -> list[str]:
        """Lines of the failure banner, skipping fields the tool didn't report."""
        header = f"{tool} Compilation Failed!"
        if self.status is not None:
            header += f" [{self.status}]"
        lines = [header]
        if self.file is not None:
            location = f"File {self.file}"
            if self.line is not None:
                location += f" [{self.line}:{self.column if self.column is not None else '?'}]"
            lines.append(location)
        lines.append(self.message)
        if self.formatted:
            lines.append(self.formatted)
        return lines


class SessionState(BaseModel):
    """Mutable bookkeeping owned by a CompileSession."""
    status: SessionStatus = SessionStatus.idle
    success_count: int = Field(default=0, ge=0)
    watch_enabled: bool = False
    intermediate_path: Path | None = None
