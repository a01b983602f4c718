"""
journey MCP Server — ブラウザ操作記録のトリガーサーバー

FastMCP を使用して、ブラウザを開き、記録の開始・停止・レポート生成を
ツールとして公開する。各ツールは RecorderController にコマンドを委譲し、
結果を JSON 文字列で返す。

本モジュールはサーバー生成とライフサイクル管理（open, close）を担当する。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from fastmcp import FastMCP

from ..config import RecorderConfig, load_config
from ..core.artifacts import FileArtifactStore
from ..core.script_writer import ScriptWriter
from .controller import RecorderController
from .session import RecordingSession

logger = logging.getLogger(__name__)

_NOT_OPEN = "Browser is not open. Call journey_open first."


def create_server(config: Optional[RecorderConfig] = None) -> FastMCP:
    """journey MCP サーバーを生成する。

    Args:
        config: 記録設定。None の場合はプロジェクトファイルと環境変数から読み込む。

    Returns:
        設定済みの FastMCP サーバーインスタンス
    """
    if config is None:
        config = load_config()

    mcp = FastMCP("journey-recorder")

    session = RecordingSession(config)

    # 状態を保持するための可変コンテナ
    state: dict[str, Any] = {
        "controller": None,  # RecorderController インスタンス
        "config": config,
    }

    def _controller() -> Optional[RecorderController]:
        return state["controller"]

    # -------------------------------------------------------------------
    # ライフサイクルツール（open / close）
    # -------------------------------------------------------------------

    @mcp.tool
    async def journey_open(url: str, headed: Optional[bool] = None) -> str:
        """Launch a browser, open the URL and prepare the recorder.

        Args:
            url: Page to record
            headed: Show browser window. None uses server config.

        Returns:
            Status message
        """
        cfg: RecorderConfig = state["config"]
        if session.is_open:
            return "Browser is already open. Call journey_close first."
        recorder = await session.open(url, headed=headed)
        state["controller"] = RecorderController(
            recorder,
            session.host,
            FileArtifactStore(Path(cfg.output_dir)),
            writer=ScriptWriter(cfg.script_dialect, cfg.action_timeout_ms),
            fallback_url=cfg.fallback_url,
        )
        return f"Browser launched. Navigated to {url}."

    @mcp.tool
    async def journey_close() -> str:
        """Stop recording if needed and close the browser."""
        controller = _controller()
        if controller is not None and controller.recorder.is_recording:
            await controller.stop()
        await session.close()
        state["controller"] = None
        return "Browser closed."

    # -------------------------------------------------------------------
    # トリガーコマンド
    # -------------------------------------------------------------------

    @mcp.tool
    async def journey_ping() -> str:
        """Readiness probe. Returns "pong" when the recorder is ready."""
        controller = _controller()
        if controller is None:
            return _NOT_OPEN
        return controller.ping()

    @mcp.tool
    async def journey_start() -> str:
        """Start recording user interactions on the open page."""
        controller = _controller()
        if controller is None:
            return _NOT_OPEN
        return (await controller.start()).model_dump_json()

    @mcp.tool
    async def journey_stop() -> str:
        """Stop recording and close the event log."""
        controller = _controller()
        if controller is None:
            return _NOT_OPEN
        return (await controller.stop()).model_dump_json()

    @mcp.tool
    async def journey_generate_report() -> str:
        """Generate the Playwright script and HTML report from the last recording."""
        controller = _controller()
        if controller is None:
            return _NOT_OPEN
        return (await controller.generate_report()).model_dump_json()

    return mcp


# ---------------------------------------------------------------------------
# エントリポイント（直接実行用）
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    create_server().run()
