"""
EventRecorder — 記録セッションの状態機械

CaptureHost にリスナーを登録してユーザー操作を受け取り、
Interactivity Classifier と Selector Synthesizer を通して EventLog に追記する。

状態遷移:
  IDLE --start()--> RECORDING --stop()--> IDLE（繰り返し可能）

主な機能:
  - start(): ログを初期化し、document / window のリスナーと MutationWatcher を登録
  - stop(): 登録した全ハンドルを解放し、close 済みスナップショットを返す
  - MutationWatcher: 動的に追加されたインタラクティブ要素へのリスナー登録
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Callable, Optional

from ..core.classifier import is_interactive
from ..core.dom import ElementInfo
from ..core.events import Event, EventLog
from ..core.selector import SelectorSynthesizer
from .host import (
    DOCUMENT_TARGET,
    WINDOW_TARGET,
    CaptureHost,
    DomEvent,
    EventCallback,
    ListenerHandle,
    MutationBatch,
    element_target,
)

logger = logging.getLogger(__name__)

# チェック状態を値として記録する input の type
CHECKABLE_TYPES = frozenset({"checkbox", "radio"})

# input リスナーを追加登録するタグ
_TEXT_ENTRY_TAGS = frozenset({"input", "textarea"})


class RecorderState(enum.Enum):
    """記録セッションの状態。"""

    IDLE = "idle"
    RECORDING = "recording"


class RecorderStateError(Exception):
    """現在の状態では実行できない操作が要求された場合のエラー。"""


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


async def _release_all(handles: list[ListenerHandle]) -> None:
    """全ハンドルを解放する。個々の失敗は記録して残りの解放を続ける。"""
    while handles:
        handle = handles.pop()
        try:
            await handle.release()
        except Exception:
            logger.exception("リスナーの解除に失敗しました: %s", handle)


# ---------------------------------------------------------------------------
# MutationWatcher
# ---------------------------------------------------------------------------

class MutationWatcher:
    """DOM に追加された要素を監視し、操作対象にリスナーを登録する。

    登録したハンドルはすべてこのインスタンスが保持し、
    release() で確実に解放する。
    """

    def __init__(
        self,
        host: CaptureHost,
        on_click: EventCallback,
        on_input: EventCallback,
        classifier: Callable[[ElementInfo], bool] = is_interactive,
    ) -> None:
        self._host = host
        self._on_click = on_click
        self._on_input = on_input
        self._classifier = classifier
        self._handles: list[ListenerHandle] = []
        self._released = False

    @property
    def handle_count(self) -> int:
        return len(self._handles)

    async def attach(self) -> None:
        """document.body のサブツリー監視を開始する。"""
        handle = await self._host.observe_mutations(self.handle)
        self._handles.append(handle)

    async def handle(self, batch: MutationBatch) -> None:
        """追加要素ごとに判定し、click / input リスナーを登録する。"""
        for subtree in batch.added:
            for element in subtree.elements():
                if self._released:
                    return
                if element.ref is None or not self._classifier(element):
                    continue
                try:
                    await self._attach_element(element)
                except Exception:
                    logger.exception("動的要素へのリスナー登録に失敗しました: %s", element.tag)

    async def release(self) -> None:
        self._released = True
        await _release_all(self._handles)

    async def _attach_element(self, element: ElementInfo) -> None:
        target = element_target(element.ref or "")
        await self._keep(
            await self._host.listen(target, "click", self._on_click, capture=True)
        )
        if element.tag.lower() in _TEXT_ENTRY_TAGS:
            await self._keep(
                await self._host.listen(target, "input", self._on_input, capture=True)
            )
        logger.debug("動的要素にリスナーを登録しました: %s", target)

    async def _keep(self, handle: ListenerHandle) -> None:
        # release 後に登録が完了したハンドルはその場で解放する
        if self._released:
            await handle.release()
            return
        self._handles.append(handle)


# ---------------------------------------------------------------------------
# EventRecorder 本体
# ---------------------------------------------------------------------------

class EventRecorder:
    """ユーザー操作の記録エンジン。

    使用例::

        recorder = EventRecorder(host)
        await recorder.start()
        ...  # ユーザー操作
        snapshot = await recorder.stop()

    コールバックは asyncio.Lock で直列化されるため、
    イベントはコールバックの到着順に追記される。
    """

    def __init__(
        self,
        host: CaptureHost,
        synthesizer: Optional[SelectorSynthesizer] = None,
        classifier: Callable[[ElementInfo], bool] = is_interactive,
        clock: Callable[[], int] = _epoch_millis,
    ) -> None:
        """EventRecorder を初期化する。

        Args:
            host: イベントの供給元
            synthesizer: セレクタ生成器。None の場合は host.document で生成する。
            classifier: 操作対象判定
            clock: ミリ秒単位の現在時刻を返す関数
        """
        self._host = host
        self._synthesizer = synthesizer or SelectorSynthesizer(host.document)
        self._classifier = classifier
        self._clock = clock
        self._state = RecorderState.IDLE
        self._log = EventLog()
        self._handles: list[ListenerHandle] = []
        self._watcher: Optional[MutationWatcher] = None
        self._lock = asyncio.Lock()
        self._last_event_key: Optional[tuple[str, str, int]] = None

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is RecorderState.RECORDING

    @property
    def event_count(self) -> int:
        return len(self._log)

    @property
    def last_snapshot(self) -> tuple[Event, ...]:
        """最後に close されたログのスナップショット。記録中は RecorderStateError。"""
        if self.is_recording:
            raise RecorderStateError("記録中です。先に stop() を呼んでください。")
        return self._log.snapshot()

    @property
    def handle_count(self) -> int:
        """現在保持しているリスナーハンドル数（動的要素分を含む）。"""
        watcher_handles = self._watcher.handle_count if self._watcher else 0
        return len(self._handles) + watcher_handles

    # -------------------------------------------------------------------
    # ライフサイクル
    # -------------------------------------------------------------------

    async def start(self) -> None:
        """記録を開始する。

        Raises:
            RecorderStateError: 既に記録中の場合
        """
        async with self._lock:
            if self.is_recording:
                raise RecorderStateError("既に記録中です。先に stop() を呼んでください。")

            self._log = EventLog()
            self._last_event_key = None
            self._state = RecorderState.RECORDING
            watcher = MutationWatcher(
                self._host, self._on_click, self._on_input, self._classifier,
            )
            self._watcher = watcher

            try:
                listen = self._host.listen
                self._handles.append(
                    await listen(DOCUMENT_TARGET, "click", self._on_click, capture=True)
                )
                self._handles.append(
                    await listen(DOCUMENT_TARGET, "input", self._on_input, capture=True)
                )
                self._handles.append(
                    await listen(WINDOW_TARGET, "popstate", self._on_navigation)
                )
                self._handles.append(
                    await listen(WINDOW_TARGET, "hashchange", self._on_navigation)
                )
                await watcher.attach()
            except Exception:
                logger.exception("リスナーの登録に失敗しました。記録を中止します")
                await self._detach()
                self._state = RecorderState.IDLE
                self._log.close()
                raise

        logger.info("記録を開始しました")

    async def stop(self) -> tuple[Event, ...]:
        """記録を停止し、close 済みのスナップショットを返す。

        記録中でない場合は何もせず、直前のスナップショットを返す。
        """
        async with self._lock:
            if not self.is_recording:
                logger.debug("記録中ではないため stop をスキップします")
                return self._log.snapshot()

            self._state = RecorderState.IDLE
            await self._detach()
            snapshot = self._log.close()

        logger.info("記録を停止しました: %d 件", len(snapshot))
        return snapshot

    async def _detach(self) -> None:
        await _release_all(self._handles)
        if self._watcher is not None:
            await self._watcher.release()
            self._watcher = None

    # -------------------------------------------------------------------
    # キャプチャコールバック
    # -------------------------------------------------------------------

    async def _on_click(self, event: DomEvent) -> None:
        async with self._lock:
            if not self._accept(event):
                return
            element = event.target
            if element is None or not self._classifier(element):
                return
            try:
                selector = await self._synthesizer.synthesize(element)
                recorded = Event.click(
                    selector,
                    timestamp=self._next_timestamp(),
                    url=event.url or await self._host.current_url(),
                    element_type=element.tag.lower(),
                    text=element.visible_text,
                )
                self._log.append(recorded)
            except Exception:
                logger.exception("クリックの記録に失敗しました")
                return
            logger.debug("クリックを記録しました: %s", selector)

    async def _on_input(self, event: DomEvent) -> None:
        async with self._lock:
            if not self._accept(event):
                return
            element = event.target
            if element is None or element.input_type == "password":
                return
            try:
                selector = await self._synthesizer.synthesize(element)
                if element.input_type in CHECKABLE_TYPES:
                    value: bool | str = bool(element.checked)
                else:
                    value = element.value or ""
                recorded = Event.input(
                    selector,
                    value,
                    timestamp=self._next_timestamp(),
                    url=event.url or await self._host.current_url(),
                    element_type=element.tag.lower(),
                )
                self._log.append(recorded)
            except Exception:
                logger.exception("入力の記録に失敗しました")
                return
            logger.debug("入力を記録しました: %s", selector)

    async def _on_navigation(self, event: DomEvent) -> None:
        async with self._lock:
            if not self._accept(event):
                return
            try:
                url = event.url or await self._host.current_url()
                self._log.append(Event.navigation(url, timestamp=self._next_timestamp()))
            except Exception:
                logger.exception("ページ遷移の記録に失敗しました")
                return
            logger.debug("ページ遷移を記録しました: %s", url)

    def _accept(self, event: DomEvent) -> bool:
        """記録中かつ未処理のネイティブイベントなら True を返す。

        document と個別要素の両方のリスナーに届いた同一イベントは 1 回だけ記録する。
        """
        if not self.is_recording:
            return False
        if not event.event_id:
            return True
        # 連番はドキュメントごとに 1 から振り直される
        key = (event.document_id, event.url, event.event_id)
        if key == self._last_event_key:
            return False
        self._last_event_key = key
        return True

    def _next_timestamp(self) -> int:
        # 時計が巻き戻ってもログのタイムスタンプは減少させない
        now = self._clock()
        last = self._log.last_timestamp
        if last is not None and now < last:
            return last
        return now
