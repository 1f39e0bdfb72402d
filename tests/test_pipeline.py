import asyncio
import io
import json
import textwrap
import typing as ty
from pathlib import Path

import pytest
from click.testing import CliRunner
from rich.console import Console

from enumstream._cli import enumstream
from enumstream.pipeline import (
    construct_pipeline,
    factory,
    register_defaults,
    run_pipeline,
)
from enumstream.pipeline.sinks import ConsoleSink, JsonLinesSink, PipeJunction
from enumstream.pipeline.sources import lines_source, range_source
from enumstream.streams import IterSource


@pytest.fixture(autouse=True)
def registry(monkeypatch: pytest.MonkeyPatch) -> ty.Dict[str, ty.Any]:
    """Gives each test its own factory registry."""
    create_funcs: ty.Dict[str, ty.Any] = {}
    monkeypatch.setattr(factory, "create_funcs", create_funcs)
    return create_funcs


def read_jsonl(path: Path) -> ty.List[ty.Dict[str, ty.Any]]:
    with open(path) as f:
        return [json.loads(line) for line in f]


def test_factory(registry: ty.Dict[str, ty.Any]) -> None:
    factory.register("range", range_source)
    source = factory.create({"type": "range", "stop": 3})
    assert asyncio.run(run_pipeline(source, PipeJunction())) == 3
    factory.unregister("range")
    assert "range" not in registry
    with pytest.raises(ValueError):
        factory.create({"type": "range", "stop": 3})
    with pytest.raises(ValueError):
        factory.create({"stop": 3})


def test_lines_source(tmp_path: Path) -> None:
    path = tmp_path / "input.txt"
    path.write_text("first\nsecond\n")
    source = lines_source(path)
    sink = JsonLinesSink(tmp_path / "out.jsonl")
    assert asyncio.run(run_pipeline(source, sink)) == 2
    assert read_jsonl(tmp_path / "out.jsonl") == [
        {"index": 0, "item": "first"},
        {"index": 1, "item": "second"},
    ]
    with pytest.raises(ValueError):
        lines_source(tmp_path / "missing.txt")


def test_junction_fan_out(tmp_path: Path) -> None:
    """Tests that every branch of a junction receives every item."""
    buffer = io.StringIO()
    junction = PipeJunction()
    junction.add(ConsoleSink(Console(file=buffer, color_system=None)))
    junction.add(JsonLinesSink(tmp_path / "out.jsonl"))
    count = asyncio.run(run_pipeline(IterSource("ab"), junction))
    assert count == 2
    assert buffer.getvalue().splitlines() == ["0: a", "1: b"]
    assert [r["index"] for r in read_jsonl(tmp_path / "out.jsonl")] == [0, 1]
    with pytest.raises(RuntimeError):
        asyncio.run(junction.send((2, "c")))


def test_junction_remove() -> None:
    junction = PipeJunction()
    sink = ConsoleSink(Console(file=io.StringIO()))
    junction.add(sink)
    assert junction.branches == (sink,)
    junction.remove(sink)
    assert junction.branches == ()


def test_sink_closed_on_failure(tmp_path: Path) -> None:
    async def failing() -> ty.AsyncIterator[int]:
        yield 1
        raise ValueError("broken source")

    sink = JsonLinesSink(tmp_path / "out.jsonl")
    with pytest.raises(ValueError, match="broken source"):
        asyncio.run(run_pipeline(failing(), sink))
    assert read_jsonl(tmp_path / "out.jsonl") == [{"index": 0, "item": 1}]


def test_sink_closed_on_bad_source(tmp_path: Path) -> None:
    """Tests that the sink is closed when the source is not a stream."""
    sink = JsonLinesSink(tmp_path / "out.jsonl")
    with pytest.raises(TypeError):
        asyncio.run(run_pipeline([1, 2], sink))  # type: ignore
    assert sink.closed is True


def test_range_source_rejects_zero_step() -> None:
    with pytest.raises(ValueError):
        range_source(5, step=0)
    source = range_source(5, start=1, step=2)
    assert asyncio.run(run_pipeline(source, PipeJunction())) == 2


def test_junction_closes_every_branch() -> None:
    """Tests that a branch failing to close does not keep the branches
    after it open.
    """

    class FailingSink(ConsoleSink):
        async def close(self) -> None:
            await super().close()
            raise OSError("disk gone")

    failing = FailingSink(Console(file=io.StringIO()))
    after = ConsoleSink(Console(file=io.StringIO()))
    junction = PipeJunction()
    junction.add(failing)
    junction.add(after)
    with pytest.raises(OSError, match="disk gone"):
        asyncio.run(junction.close())
    assert failing.closed is True
    assert after.closed is True


def test_construct_pipeline(tmp_path: Path) -> None:
    register_defaults()
    sink_list = [{"type": "jsonl", "path": str(tmp_path / "a.jsonl")}]
    junction = asyncio.run(construct_pipeline(sink_list))
    assert len(junction.branches) == 1
    assert isinstance(junction.branches[0], JsonLinesSink)
    asyncio.run(junction.close())
    with pytest.raises(ValueError):
        asyncio.run(construct_pipeline([{"type": "range", "stop": 2}]))


def test_construct_pipeline_closes_built_sinks(tmp_path: Path) -> None:
    """Tests that sinks built before a bad pipe piece are closed."""
    register_defaults()
    built: ty.List[JsonLinesSink] = []

    def recording_jsonl(path: str) -> JsonLinesSink:
        built.append(JsonLinesSink(path))
        return built[-1]

    factory.register("jsonl", recording_jsonl)
    sink_list = [
        {"type": "jsonl", "path": str(tmp_path / "a.jsonl")},
        {"type": "range", "stop": 2},
    ]
    with pytest.raises(ValueError):
        asyncio.run(construct_pipeline(sink_list))
    assert len(built) == 1
    assert built[0].closed is True


def write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent(content))
    return path


def test_cli_run(tmp_path: Path) -> None:
    output = tmp_path / "out.jsonl"
    config = write_config(
        tmp_path,
        f"""
        plugins: []
        source:
          type: range
          start: 5
          stop: 8
        sinks:
          - type: console
          - type: jsonl
            path: {output}
        """,
    )
    result = CliRunner().invoke(enumstream, [str(config), "run"])
    assert result.exit_code == 0, result.output
    assert "Enumerated 3 items." in result.output
    assert "2: 7" in result.output
    assert read_jsonl(output) == [
        {"index": 0, "item": 5},
        {"index": 1, "item": 6},
        {"index": 2, "item": 7},
    ]


def test_cli_unknown_source(tmp_path: Path) -> None:
    config = write_config(
        tmp_path,
        """
        source:
          type: nowhere
        """,
    )
    result = CliRunner().invoke(enumstream, [str(config), "run"])
    assert result.exit_code == 1
    assert "Unknown source or sink of name nowhere." in result.output


def test_cli_missing_source(tmp_path: Path) -> None:
    config = write_config(tmp_path, "sinks: []\n")
    result = CliRunner().invoke(enumstream, [str(config), "run"])
    assert result.exit_code == 1
    assert "Configuration has no source." in result.output


def test_cli_plugin(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Tests that plugins can register their own sources."""
    (tmp_path / "letters_plugin.py").write_text(
        textwrap.dedent(
            """
            from enumstream.pipeline import factory
            from enumstream.streams import IterSource


            def initialise():
                factory.register("letters", lambda text: IterSource(text))
            """
        )
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    config = write_config(
        tmp_path,
        """
        plugins:
          - letters_plugin
        source:
          type: letters
          text: xy
        """,
    )
    result = CliRunner().invoke(enumstream, [str(config), "run"])
    assert result.exit_code == 0, result.output
    assert "0: x" in result.output
    assert "1: y" in result.output
    assert "Enumerated 2 items." in result.output


def test_cli_source_not_a_stream(tmp_path: Path) -> None:
    config = write_config(
        tmp_path,
        """
        source:
          type: console
        """,
    )
    result = CliRunner().invoke(enumstream, [str(config), "run"])
    assert result.exit_code == 1
    assert "ConsoleSink object is not an async iterator." in result.output


def test_cli_bad_sink(tmp_path: Path) -> None:
    """Tests that a sink list naming a source is reported, and nothing
    is written to the sinks built before it.
    """
    output = tmp_path / "out.jsonl"
    config = write_config(
        tmp_path,
        f"""
        source:
          type: range
          stop: 3
        sinks:
          - type: jsonl
            path: {output}
          - type: range
            stop: 2
        """,
    )
    result = CliRunner().invoke(enumstream, [str(config), "run"])
    assert result.exit_code == 1
    assert "Unknown pipe piece type" in result.output
    assert read_jsonl(output) == []


def test_cli_bad_range(tmp_path: Path) -> None:
    config = write_config(
        tmp_path,
        """
        source:
          type: range
          stop: 3
          step: 0
        """,
    )
    result = CliRunner().invoke(enumstream, [str(config), "run"])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_cli_missing_plugin(tmp_path: Path) -> None:
    config = write_config(
        tmp_path,
        """
        plugins:
          - no_such_enumstream_plugin
        source:
          type: range
          stop: 3
        """,
    )
    result = CliRunner().invoke(enumstream, [str(config), "run"])
    assert result.exit_code == 1
    assert "Cannot import plugin no_such_enumstream_plugin" in result.output


def test_cli_plugin_without_initialise(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "inert_plugin.py").write_text("NAME = 'inert'\n")
    monkeypatch.syspath_prepend(str(tmp_path))
    config = write_config(
        tmp_path,
        """
        plugins:
          - inert_plugin
        source:
          type: range
          stop: 3
        """,
    )
    result = CliRunner().invoke(enumstream, [str(config), "run"])
    assert result.exit_code == 1
    assert "Plugin inert_plugin has no initialise() function." in result.output
