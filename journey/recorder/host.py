"""
CaptureHost — イベント購読の抽象インターフェース

EventRecorder がリスナーを登録する相手（ブラウザページ等）を抽象化する。
Playwright 実装は playwright_host.PlaywrightHost。

リスナーの登録先:
  - "document": ドキュメント全体
  - "window": ウィンドウ（popstate / hashchange）
  - "ref:<id>": 動的に発見した個別要素（ElementInfo.ref）
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional, Protocol

from pydantic import BaseModel, Field

from ..core.dom import Document, ElementInfo

DOCUMENT_TARGET = "document"
WINDOW_TARGET = "window"


def element_target(ref: str) -> str:
    """個別要素を指す登録先文字列を返す。"""
    return f"ref:{ref}"


class DomEvent(BaseModel):
    """ページ側で発生したネイティブイベント。

    Attributes:
        type: イベント種別（click, input, popstate, hashchange）
        event_id: ネイティブイベントごとの連番（複数リスナーへの配送でも同一）
        document_id: イベントを送ったドキュメント（ブリッジ注入ごと）の識別子
        url: 発生時の location.href
        target: イベント対象要素（window イベントでは None）
    """

    type: str
    event_id: int = 0
    document_id: str = ""
    url: str = ""
    target: Optional[ElementInfo] = None


class AddedSubtree(BaseModel):
    """DOM に追加された要素とその子孫。"""

    root: ElementInfo
    descendants: list[ElementInfo] = Field(default_factory=list)

    def elements(self) -> list[ElementInfo]:
        return [self.root, *self.descendants]


class MutationBatch(BaseModel):
    """1 回の MutationObserver コールバックで通知された追加要素。"""

    added: list[AddedSubtree] = Field(default_factory=list)


EventCallback = Callable[[DomEvent], Awaitable[None]]
MutationCallback = Callable[[MutationBatch], Awaitable[None]]


class ListenerHandle(Protocol):
    """登録済みリスナーのハンドル。release() で登録を解除する。"""

    async def release(self) -> None:
        ...


class CaptureHost(Protocol):
    """EventRecorder が購読するイベントの供給元。"""

    @property
    def document(self) -> Document:
        ...

    async def current_url(self) -> str:
        ...

    async def listen(
        self,
        target: str,
        event_type: str,
        callback: EventCallback,
        capture: bool = False,
    ) -> ListenerHandle:
        ...

    async def observe_mutations(self, callback: MutationCallback) -> ListenerHandle:
        ...
