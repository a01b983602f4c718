"""
RecorderController — トリガーコマンドの受け口

外部のメッセージング（MCP ツール、CLI 等）から届くコマンドを
EventRecorder / ScriptWriter / ReportAssembler / ArtifactStore に振り分ける。

コマンド:
  - ping: 準備完了確認（"pong" を返す）
  - start / stop: 記録の開始・停止
  - generate_report: スクリプトとレポートを生成してストレージに渡す

コマンド実行中の想定外の例外は呼び出し元に伝播させず、
success=False とエラーメッセージを持つ CommandResult として返す。
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel

from ..core.artifacts import ArtifactStore, build_request
from ..core.reporting import ReportAssembler
from ..core.script_writer import DEFAULT_FALLBACK_URL, ScriptWriter
from ..recorder.host import CaptureHost
from ..recorder.session import EventRecorder

logger = logging.getLogger(__name__)


class CommandResult(BaseModel):
    """コマンドの実行結果。

    Attributes:
        success: 成功したか
        data: コマンド固有の結果
        error: 失敗時のエラーメッセージ
    """

    success: bool
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class RecorderController:
    """トリガーコマンドを記録コンポーネントに振り分ける。

    使用例::

        controller = RecorderController(recorder, host, FileArtifactStore())
        await controller.start()
        ...
        await controller.stop()
        result = await controller.generate_report()
    """

    # 元のメッセージ action 名 → メソッド名
    ACTIONS = {
        "startRecording": "start",
        "stopRecording": "stop",
        "generateReport": "generate_report",
    }

    def __init__(
        self,
        recorder: EventRecorder,
        host: CaptureHost,
        store: ArtifactStore,
        writer: Optional[ScriptWriter] = None,
        assembler: Optional[ReportAssembler] = None,
        fallback_url: str = DEFAULT_FALLBACK_URL,
    ) -> None:
        self.recorder = recorder
        self._host = host
        self._store = store
        self._writer = writer or ScriptWriter()
        self._assembler = assembler or ReportAssembler()
        self._fallback_url = fallback_url

    def ping(self) -> str:
        return "pong"

    async def start(self) -> CommandResult:
        async def _start() -> dict[str, Any]:
            await self.recorder.start()
            return {"recording": True}

        return await self._guard("start", _start)

    async def stop(self) -> CommandResult:
        async def _stop() -> dict[str, Any]:
            snapshot = await self.recorder.stop()
            return {"recording": False, "events": len(snapshot)}

        return await self._guard("stop", _stop)

    async def generate_report(self) -> CommandResult:
        return await self._guard("generate_report", self._generate_report)

    async def dispatch(self, action: str) -> Union[CommandResult, str]:
        """action 名でコマンドを実行する。

        Args:
            action: ping / startRecording / stopRecording / generateReport
                    （start / stop / generate_report も可）

        Returns:
            ping は "pong"、それ以外は CommandResult
        """
        if action == "ping":
            return self.ping()

        method_name = self.ACTIONS.get(action, action)
        if method_name not in self.ACTIONS.values():
            return CommandResult(success=False, error=f"未知のコマンドです: {action}")
        command: Callable[[], Awaitable[CommandResult]] = getattr(self, method_name)
        return await command()

    # -------------------------------------------------------------------
    # 内部ヘルパー
    # -------------------------------------------------------------------

    async def _generate_report(self) -> dict[str, Any]:
        snapshot = self.recorder.last_snapshot
        url = await self._host.current_url()
        script = self._writer.synthesize(snapshot, fallback_url=url or self._fallback_url)
        report = self._assembler.assemble(snapshot, script, url=url)
        if report is None:
            return {"recorded": False, "events": 0}

        request = build_request(report.content, url or snapshot[-1].url)
        path = self._store.save(request)
        return {
            "recorded": True,
            "events": report.event_count,
            "filename": request.suggested_filename,
            "path": str(path),
        }

    async def _guard(
        self,
        name: str,
        command: Callable[[], Awaitable[dict[str, Any]]],
    ) -> CommandResult:
        try:
            data = await command()
        except Exception as exc:
            logger.exception("コマンドの実行に失敗しました: %s", name)
            return CommandResult(success=False, error=str(exc))
        return CommandResult(success=True, data=data)
