"""
テスト共通フィクスチャ・Hypothesis ストラテジー定義

全テストモジュールで共有するフィクスチャ、ブラウザを使わない
キャプチャホスト（FakeHost）、データ生成器を提供する。
"""

from __future__ import annotations

from typing import Optional

import pytest
from hypothesis import strategies as st

from journey.core.dom import ElementInfo, HtmlDocument
from journey.core.events import Event
from journey.recorder.host import (
    AddedSubtree,
    DomEvent,
    EventCallback,
    MutationBatch,
    MutationCallback,
)


# ---------------------------------------------------------------------------
# FakeHost — CaptureHost のテスト用実装
# ---------------------------------------------------------------------------

class FakeHandle:
    """解放回数を記録するリスナーハンドル。"""

    def __init__(self, host: "FakeHost", key: int) -> None:
        self._host = host
        self.key = key
        self.release_count = 0

    async def release(self) -> None:
        self.release_count += 1
        self._host.listeners.pop(self.key, None)
        self._host.observers.pop(self.key, None)


class FakeHost:
    """HtmlDocument 上で動く CaptureHost。

    listen / observe_mutations の登録を保持し、fire / mutate で
    ページ側のイベント配送を模擬する。
    """

    def __init__(self, html: str = "<body></body>", url: str = "https://example.com/") -> None:
        self._document = HtmlDocument(html)
        self.url = url
        self.document_id = "doc-1"
        self.listeners: dict[int, tuple[str, str, EventCallback, bool]] = {}
        self.observers: dict[int, MutationCallback] = {}
        self.handles: list[FakeHandle] = []
        self.fail_on: Optional[tuple[str, str]] = None
        self._next_key = 0
        self._next_event_id = 0

    @property
    def document(self) -> HtmlDocument:
        return self._document

    async def current_url(self) -> str:
        return self.url

    async def listen(
        self,
        target: str,
        event_type: str,
        callback: EventCallback,
        capture: bool = False,
    ) -> FakeHandle:
        if self.fail_on == (target, event_type):
            raise RuntimeError(f"listen failed: {target} {event_type}")
        handle = self._new_handle()
        self.listeners[handle.key] = (target, event_type, callback, capture)
        return handle

    async def observe_mutations(self, callback: MutationCallback) -> FakeHandle:
        handle = self._new_handle()
        self.observers[handle.key] = callback
        return handle

    # -------------------------------------------------------------------
    # テストからの操作
    # -------------------------------------------------------------------

    def targets(self, event_type: str) -> list[str]:
        return [t for (t, e, _, _) in self.listeners.values() if e == event_type]

    def element(self, selector: str, ref: Optional[str] = None) -> ElementInfo:
        element = self._document.element(selector)
        if ref is not None:
            element = element.model_copy(update={"ref": ref})
        return element

    async def fire(
        self,
        target: str,
        event_type: str,
        element: Optional[ElementInfo] = None,
        event_id: Optional[int] = None,
    ) -> int:
        """target に登録されたリスナーへイベントを配送し、呼び出し数を返す。"""
        if event_id is None:
            self._next_event_id += 1
            event_id = self._next_event_id
        event = DomEvent(
            type=event_type,
            event_id=event_id,
            document_id=self.document_id,
            url=self.url,
            target=element,
        )
        callbacks = [
            cb for (t, e, cb, _) in list(self.listeners.values())
            if t == target and e == event_type
        ]
        for callback in callbacks:
            await callback(event)
        return len(callbacks)

    async def mutate(self, *roots: ElementInfo) -> None:
        batch = MutationBatch(added=[AddedSubtree(root=root) for root in roots])
        for callback in list(self.observers.values()):
            await callback(batch)

    def _new_handle(self) -> FakeHandle:
        self._next_key += 1
        handle = FakeHandle(self, self._next_key)
        self.handles.append(handle)
        return handle


class FakeClock:
    """呼び出しごとに指定値を返す時計。値が尽きたら最後の値を返し続ける。"""

    def __init__(self, *values: int) -> None:
        self._values = list(values) or [0]
        self._index = 0

    def __call__(self) -> int:
        value = self._values[min(self._index, len(self._values) - 1)]
        self._index += 1
        return value


# ---------------------------------------------------------------------------
# サンプル HTML
# ---------------------------------------------------------------------------

SAMPLE_HTML = """\
<html><body>
  <main id="app">
    <button data-testid="submit">Submit</button>
    <a href="/next">Next</a>
    <input id="q" name="q" type="text" value="">
    <input id="pw" type="password" value="hunter2">
    <input id="agree" type="checkbox">
    <div class="clickable">Tile</div>
    <p>plain</p>
  </main>
</body></html>
"""


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def host() -> FakeHost:
    """サンプル HTML を持つ FakeHost。"""
    return FakeHost(SAMPLE_HTML)


@pytest.fixture
def sample_events() -> list[Event]:
    """クリック・入力・遷移を含む記録済みイベント列。"""
    return [
        Event.click("#start", timestamp=1000, url="https://example.com/", element_type="button"),
        Event.input("#q", "hello", timestamp=1100, url="https://example.com/", element_type="input"),
        Event.navigation("https://example.com/results", timestamp=1200),
        Event.input("#agree", True, timestamp=1300, url="https://example.com/results", element_type="input"),
    ]


# ---------------------------------------------------------------------------
# Hypothesis ストラテジー
# ---------------------------------------------------------------------------

selectors = st.sampled_from(["#a", "#b", "[data-testid=\"x\"]", "button:has-text(\"Go\")"])
urls = st.sampled_from([
    "https://example.com/",
    "https://example.com/a",
    "https://shop.example.org/cart",
])


@st.composite
def event_logs(draw: st.DrawFn) -> list[Event]:
    """タイムスタンプが非減少のイベント列を生成する。"""
    count = draw(st.integers(min_value=0, max_value=12))
    timestamp = draw(st.integers(min_value=0, max_value=10_000))
    events: list[Event] = []
    for _ in range(count):
        timestamp += draw(st.integers(min_value=0, max_value=500))
        kind = draw(st.sampled_from(["click", "input", "navigation"]))
        url = draw(urls)
        if kind == "click":
            events.append(Event.click(
                draw(selectors), timestamp=timestamp, url=url, element_type="button",
            ))
        elif kind == "input":
            value = draw(st.one_of(st.booleans(), st.text(max_size=20)))
            events.append(Event.input(
                draw(selectors), value, timestamp=timestamp, url=url, element_type="input",
            ))
        else:
            events.append(Event.navigation(url, timestamp=timestamp))
    return events
