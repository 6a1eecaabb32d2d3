"""Tests for stage command lines and the node-sass → postcss hand-off."""

import asyncio
from dataclasses import replace
from pathlib import Path

import pytest

from sass_boss.config import Config
from sass_boss.models import CompileTarget
from sass_boss.pipeline import Pipeline, remove_intermediate

from fake_tools import POSTCSS_FAIL, POSTCSS_OK, SASS_FAIL, SASS_OK


def _target(**plugin_options):
    return CompileTarget(
        source_path="resources/sass/app.scss",
        output_path="public/css/app.css",
        plugin_options=plugin_options,
    )


def test_sass_arguments_development():
    pipeline = Pipeline(Config(root="/project"))
    spec = pipeline.sass_spec(_target(), watch=False, stage2_enabled=False)

    assert spec.executable == str(Path("/project/node_modules/.bin/node-sass"))
    assert spec.arguments == (
        "resources/sass/app.scss",
        "public/css/app.css",
        "--precision=8",
        "--output-style=expanded",
    )
    assert spec.uses_shell


def test_sass_arguments_with_everything():
    pipeline = Pipeline(Config(root="/project", source_maps=True))
    target = _target(include_paths=["node_modules", "vendor/sass"], importer="importer.js")
    spec = pipeline.sass_spec(target, watch=True, stage2_enabled=True)

    assert spec.arguments == (
        "resources/sass/app.scss",
        "public/css/app.css.dist",
        "--precision=8",
        "--output-style=expanded",
        "--watch",
        "--include-path=node_modules",
        "--include-path=vendor/sass",
        "--importer", "importer.js",
        "--source-map-embed",
    )


def test_production_compresses_and_drops_source_maps():
    pipeline = Pipeline(Config(production=True, source_maps=True))
    args = pipeline.sass_spec(_target(), watch=False, stage2_enabled=False).arguments

    assert "--output-style=compressed" in args
    assert "--source-map-embed" not in args


def test_postcss_arguments():
    pipeline = Pipeline(Config(root="/project"))

    spec = pipeline.postcss_spec(_target(), watch=False)
    assert spec.executable == str(Path("/project/node_modules/.bin/postcss"))
    assert spec.arguments == (
        "public/css/app.css.dist",
        "-o", "public/css/app.css",
        "--config", str(Path("/project/postcss.config.js")),
        "--verbose",
    )

    watching = pipeline.postcss_spec(_target(), watch=True)
    assert watching.arguments[-2:] == ("--watch", "--poll")


def test_commands_follow_autoprefixer_setting():
    target = _target()
    assert len(Pipeline(Config(autoprefixer_enabled=True)).commands(target, watch=False)) == 2
    assert len(Pipeline(Config(autoprefixer_enabled=False)).commands(target, watch=False)) == 1


def test_remove_intermediate_ignores_missing_file(tmp_path):
    target = CompileTarget(source_path="a.scss", output_path=str(tmp_path / "a.css"))
    remove_intermediate(target)

    Path(target.intermediate_path).write_text("x")
    remove_intermediate(target)
    assert not Path(target.intermediate_path).exists()


class Calls:
    def __init__(self):
        self.successes = []
        self.failures = []

    def on_success(self, text):
        self.successes.append(text)

    def on_fail(self, text):
        self.failures.append(text)


async def _run(pipeline, target, calls, watch=False):
    await asyncio.wait_for(
        pipeline.run(target, watch=watch, on_success=calls.on_success, on_fail=calls.on_fail),
        timeout=10,
    )


@pytest.mark.asyncio
async def test_single_stage_success(config, target, make_tool):
    make_tool("node-sass", SASS_OK)
    calls = Calls()

    await _run(Pipeline(config), target, calls)

    assert calls.successes == [""]
    assert calls.failures == []
    assert Path(target.output_path).exists()


@pytest.mark.asyncio
async def test_error_skips_postcss(config, target, make_tool, tmp_path):
    make_tool("node-sass", SASS_FAIL)
    make_tool("postcss", f'touch "{tmp_path}/postcss-ran"\n' + POSTCSS_OK)
    calls = Calls()

    await _run(Pipeline(replace(config, autoprefixer_enabled=True)), target, calls)

    assert len(calls.failures) == 1
    assert '"message":"bad syntax"' in calls.failures[0]
    assert calls.successes == []
    assert not (tmp_path / "postcss-ran").exists()


@pytest.mark.asyncio
async def test_hand_off_to_postcss(config, target, make_tool):
    make_tool("node-sass", SASS_OK)
    make_tool("postcss", POSTCSS_OK)
    calls = Calls()

    await _run(Pipeline(replace(config, autoprefixer_enabled=True)), target, calls)

    # only the postcss success completes the pipeline
    assert calls.successes == [""]
    assert calls.failures == []
    assert Path(target.output_path).read_text() == "body { color: red; }\n"
    assert not Path(target.intermediate_path).exists()


@pytest.mark.asyncio
async def test_postcss_failure_still_removes_intermediate(config, target, make_tool):
    make_tool("node-sass", SASS_OK)
    make_tool("postcss", POSTCSS_FAIL)
    calls = Calls()

    await _run(Pipeline(replace(config, autoprefixer_enabled=True)), target, calls)

    assert calls.successes == []
    assert calls.failures == ["CssSyntaxError: Unknown word\n"]
    assert not Path(target.intermediate_path).exists()
    assert not Path(target.output_path).exists()


@pytest.mark.asyncio
async def test_stop_ends_a_watching_run(config, target, make_tool):
    make_tool("node-sass", 'echo "Wrote CSS to $2"\nexec sleep 30\n')
    pipeline = Pipeline(config)
    calls = Calls()

    def stop_after_first(text):
        calls.on_success(text)
        pipeline.stop()

    await asyncio.wait_for(
        pipeline.run(target, watch=True, on_success=stop_after_first, on_fail=calls.on_fail),
        timeout=10,
    )

    assert calls.successes == [""]
    assert not pipeline.sass.running


# node-sass --watch stand-in: two recompiles of the intermediate file
SASS_TWICE = """printf 'a { color: red; }\\n' > "$2"
echo "Wrote CSS to $2"
sleep {pause}
printf 'a { color: blue; }\\n' > "$2"
echo "Wrote CSS to $2"
"""


def _counting_postcss(spawns, linger):
    return f'echo started >> "{spawns}"\n' + POSTCSS_OK + f"sleep {linger}\n"


@pytest.mark.asyncio
async def test_watching_postcss_is_reused(config, target, make_tool, tmp_path):
    spawns = tmp_path / "postcss-spawns"
    make_tool("node-sass", SASS_TWICE.replace("{pause}", "0.3"))
    make_tool("postcss", _counting_postcss(spawns, linger=1))
    calls = Calls()

    await _run(Pipeline(replace(config, autoprefixer_enabled=True)), target, calls, watch=True)

    assert spawns.read_text().splitlines() == ["started"]
    assert calls.successes == [""]
    assert calls.failures == []
    assert not Path(target.intermediate_path).exists()


@pytest.mark.asyncio
async def test_every_postcss_run_is_collected(config, target, make_tool, tmp_path):
    spawns = tmp_path / "postcss-spawns"
    make_tool("node-sass", SASS_TWICE.replace("{pause}", "0.8"))
    make_tool("postcss", _counting_postcss(spawns, linger=0))
    successes = []

    def fail_first(text):
        successes.append(text)
        if len(successes) == 1:
            raise RuntimeError("first postcss run blew up")

    with pytest.raises(RuntimeError, match="first postcss run"):
        await asyncio.wait_for(
            Pipeline(replace(config, autoprefixer_enabled=True)).run(
                target, watch=False, on_success=fail_first, on_fail=lambda text: None
            ),
            timeout=10,
        )

    assert spawns.read_text().splitlines() == ["started", "started"]
    assert successes == ["", ""]


@pytest.mark.asyncio
async def test_change_text_reaches_observer(config, target, make_tool):
    make_tool("node-sass", 'echo "=> changed: $1"\nsleep 0.2\necho "Wrote CSS to $2"\n')
    changes = []
    calls = Calls()

    await asyncio.wait_for(
        Pipeline(config).run(
            target, watch=True,
            on_success=calls.on_success, on_fail=calls.on_fail, on_change=changes.append,
        ),
        timeout=10,
    )

    assert changes == [f"=> changed: {target.source_path}\n"]
    assert calls.successes == [""]
