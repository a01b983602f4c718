"""
journey MCP Server CLI エントリポイント

python -m journey.mcp で MCP サーバーを起動する。
設定は journey.yaml と環境変数（JOURNEY_*）で制御できる。

使用例:
  python -m journey.mcp                      # デフォルト設定で起動
  JOURNEY_HEADED=false python -m journey.mcp # ヘッドレスモード
"""

from __future__ import annotations

from .server import create_server

server = create_server()
server.run()
