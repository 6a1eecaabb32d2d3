"""Fake node-sass / postcss executables for driving real child processes."""

import stat

import pytest

from sass_boss.config import Config
from sass_boss.models import CompileTarget


@pytest.fixture
def tool_dir(tmp_path):
    path = tmp_path / "node_modules" / ".bin"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def make_tool(tool_dir):
    def _make(name: str, body: str):
        script = tool_dir / name
        script.write_text("#!/bin/sh\n" + body)
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script
    return _make


@pytest.fixture
def config(tmp_path, tool_dir):
    return Config(root=str(tmp_path), use_shell=False, autoprefixer_enabled=False)


@pytest.fixture
def target(tmp_path):
    src = tmp_path / "app.scss"
    src.write_text("body { color: red; }\n")
    return CompileTarget(source_path=str(src), output_path=str(tmp_path / "app.css"))


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, notification):
        self.sent.append(notification)


@pytest.fixture
def notifier():
    return RecordingNotifier()
