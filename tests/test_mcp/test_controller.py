"""
RecorderController テスト — トリガーコマンドの振り分け

FakeHost 上の EventRecorder と一時ディレクトリの FileArtifactStore を使い、
ping / start / stop / generate_report の結果を検証する。
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

from conftest import FakeClock, FakeHost
from journey.core.artifacts import FileArtifactStore, REPORT_SUBDIR
from journey.mcp.controller import CommandResult, RecorderController
from journey.recorder.host import DOCUMENT_TARGET
from journey.recorder.session import EventRecorder


def make_controller(host: FakeHost, tmp_path: Path, store=None) -> RecorderController:
    recorder = EventRecorder(host, clock=FakeClock(1_700_000_000_000))
    return RecorderController(recorder, host, store or FileArtifactStore(tmp_path))


class TestCommands:
    """各コマンドの結果のテスト。"""

    def test_ping(self, host: FakeHost, tmp_path: Path):
        assert make_controller(host, tmp_path).ping() == "pong"

    def test_start_and_stop(self, host: FakeHost, tmp_path: Path):
        controller = make_controller(host, tmp_path)

        async def scenario():
            started = await controller.start()
            await host.fire(DOCUMENT_TARGET, "click", host.element("button"))
            stopped = await controller.stop()
            return started, stopped

        started, stopped = asyncio.run(scenario())
        assert started == CommandResult(success=True, data={"recording": True})
        assert stopped == CommandResult(success=True, data={"recording": False, "events": 1})

    def test_start_twice_is_reported_as_failure(self, host: FakeHost, tmp_path: Path):
        controller = make_controller(host, tmp_path)

        async def scenario():
            await controller.start()
            return await controller.start()

        result = asyncio.run(scenario())
        assert result.success is False
        assert result.error

    def test_generate_report_saves_artifact(self, host: FakeHost, tmp_path: Path):
        controller = make_controller(host, tmp_path)

        async def scenario():
            await controller.start()
            await host.fire(DOCUMENT_TARGET, "click", host.element("button"))
            await controller.stop()
            return await controller.generate_report()

        result = asyncio.run(scenario())
        assert result.success is True
        assert result.data is not None
        assert result.data["recorded"] is True
        assert result.data["events"] == 1
        assert result.data["filename"].startswith(f"{REPORT_SUBDIR}/")
        assert result.data["filename"].endswith("_example.com_report.html")

        saved = Path(result.data["path"])
        content = saved.read_text(encoding="utf-8")
        assert "Test Case Report" in content
        assert "page.click(&#39;[data-testid=&#34;submit&#34;]&#39;" in content

    def test_generate_report_with_empty_log(self, host: FakeHost, tmp_path: Path):
        store = MagicMock()
        controller = make_controller(host, tmp_path, store=store)

        async def scenario():
            await controller.start()
            await controller.stop()
            return await controller.generate_report()

        result = asyncio.run(scenario())
        assert result == CommandResult(success=True, data={"recorded": False, "events": 0})
        store.save.assert_not_called()

    def test_generate_report_while_recording_fails(self, host: FakeHost, tmp_path: Path):
        controller = make_controller(host, tmp_path)

        async def scenario():
            await controller.start()
            return await controller.generate_report()

        result = asyncio.run(scenario())
        assert result.success is False
        assert list(tmp_path.iterdir()) == []

    def test_store_failure_is_reported(self, host: FakeHost, tmp_path: Path):
        store = MagicMock()
        store.save.side_effect = OSError("disk full")
        controller = make_controller(host, tmp_path, store=store)

        async def scenario():
            await controller.start()
            await host.fire(DOCUMENT_TARGET, "click", host.element("a"))
            await controller.stop()
            return await controller.generate_report()

        result = asyncio.run(scenario())
        assert result == CommandResult(success=False, error="disk full")


class TestDispatch:
    """action 名による振り分けのテスト。"""

    def test_message_actions(self, host: FakeHost, tmp_path: Path):
        controller = make_controller(host, tmp_path)

        async def scenario():
            return [
                await controller.dispatch("ping"),
                await controller.dispatch("startRecording"),
                await controller.dispatch("stopRecording"),
                await controller.dispatch("generateReport"),
            ]

        pong, started, stopped, report = asyncio.run(scenario())
        assert pong == "pong"
        assert started.success and stopped.success and report.success
        assert report.data == {"recorded": False, "events": 0}

    def test_unknown_action(self, host: FakeHost, tmp_path: Path):
        result = asyncio.run(make_controller(host, tmp_path).dispatch("explode"))
        assert isinstance(result, CommandResult)
        assert result.success is False

    def test_private_method_names_are_rejected(self, host: FakeHost, tmp_path: Path):
        result = asyncio.run(make_controller(host, tmp_path).dispatch("_guard"))
        assert isinstance(result, CommandResult)
        assert result.success is False
