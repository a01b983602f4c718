"""
journey MCP Server パッケージ

外部のエージェントやツールから記録の開始・停止・レポート生成を
トリガーするための MCP (Model Context Protocol) サーバーを提供する。

主な構成:
  - server: FastMCP サーバー本体（ライフサイクル管理）
  - controller: トリガーコマンドの振り分けと失敗の構造化
  - session: ブラウザセッション管理
"""

from __future__ import annotations

from .controller import CommandResult, RecorderController


def create_server(config=None):  # type: ignore[no-untyped-def]
    """journey MCP サーバーを生成する（遅延インポート）。

    `python -m journey.mcp.server` 実行時の RuntimeWarning を回避するため、
    server モジュールの import をここで遅延させる。

    Args:
        config: RecorderConfig インスタンス（None でプロジェクトファイルと環境変数から読み込み）

    Returns:
        設定済みの FastMCP サーバーインスタンス
    """
    from .server import create_server as _create
    return _create(config=config)


__all__ = [
    "CommandResult",
    "RecorderController",
    "create_server",
]
