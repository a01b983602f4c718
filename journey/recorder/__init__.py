"""
recorder パッケージ — ブラウザ操作の記録

ページ上のユーザー操作を購読し、イベントログとして記録する。

主な機能:
  - EventRecorder: 記録セッションの状態機械（start / stop）
  - MutationWatcher: 動的に追加された要素へのリスナー登録
  - PlaywrightHost: Playwright Page 上の CaptureHost 実装
"""

from __future__ import annotations

from .host import AddedSubtree, CaptureHost, DomEvent, MutationBatch
from .playwright_host import PlaywrightHost
from .session import EventRecorder, MutationWatcher, RecorderState, RecorderStateError

__all__ = [
    "AddedSubtree",
    "CaptureHost",
    "DomEvent",
    "EventRecorder",
    "MutationBatch",
    "MutationWatcher",
    "PlaywrightHost",
    "RecorderState",
    "RecorderStateError",
]
