"""
PlaywrightHost — Playwright Page 上の CaptureHost 実装

ページに bridge.js を注入し、expose_binding でページ側のイベントを
Python 側のコールバックへ転送する。

主な機能:
  - install(): バインディング公開とブリッジスクリプトの注入
  - listen() / observe_mutations(): ハンドル ID 単位でのリスナー登録
  - ページ再読み込み後の document / window / MutationObserver 登録の復元
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from ..core.dom import Document, PageDocument
from .host import DomEvent, EventCallback, MutationBatch, MutationCallback

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

# 注入スクリプトのパス
_BRIDGE_JS_PATH = Path(__file__).parent / "bridge.js"

BINDING_NAME = "__journeyDispatch"

_LISTEN_JS = "([h, t, e, c]) => window.__journey.listen(h, t, e, c)"
_OBSERVE_JS = "(h) => window.__journey.observe(h)"
_RELEASE_JS = "(h) => window.__journey && window.__journey.release(h)"


class PlaywrightListenerHandle:
    """PlaywrightHost に登録したリスナーのハンドル。"""

    def __init__(self, host: PlaywrightHost, handle_id: int) -> None:
        self._host = host
        self.handle_id = handle_id

    async def release(self) -> None:
        await self._host.release(self.handle_id)

    def __repr__(self) -> str:
        return f"PlaywrightListenerHandle({self.handle_id})"


class PlaywrightHost:
    """Playwright Page をイベント供給元とする CaptureHost。

    使用例::

        host = PlaywrightHost(page)
        await host.install()
        recorder = EventRecorder(host)
    """

    def __init__(self, page: Page) -> None:
        self._page = page
        self._document = PageDocument(page)
        self._next_id = 0
        self._event_callbacks: dict[int, EventCallback] = {}
        self._mutation_callbacks: dict[int, MutationCallback] = {}
        # 再読み込み後に復元する登録（個別要素は復元しない）
        self._persistent: dict[int, tuple[str, str, bool]] = {}
        self._installed = False

    @property
    def document(self) -> Document:
        return self._document

    @property
    def page(self) -> Page:
        return self._page

    @property
    def active_handles(self) -> int:
        return len(self._event_callbacks) + len(self._mutation_callbacks)

    async def install(self) -> None:
        """バインディングを公開し、ブリッジスクリプトを注入する。"""
        if self._installed:
            return
        bridge_js = _BRIDGE_JS_PATH.read_text(encoding="utf-8")
        await self._page.expose_binding(BINDING_NAME, self._on_binding)
        await self._page.add_init_script(script=bridge_js)
        await self._page.evaluate(bridge_js)
        self._page.on("domcontentloaded", self._on_document_loaded)
        self._installed = True
        logger.info("キャプチャブリッジを注入しました: %s", self._page.url)

    async def current_url(self) -> str:
        return self._page.url

    async def listen(
        self,
        target: str,
        event_type: str,
        callback: EventCallback,
        capture: bool = False,
    ) -> PlaywrightListenerHandle:
        handle_id = self._allocate()
        self._event_callbacks[handle_id] = callback
        if not target.startswith("ref:"):
            self._persistent[handle_id] = (target, event_type, capture)

        try:
            attached = await self._page.evaluate(
                _LISTEN_JS, [handle_id, target, event_type, capture],
            )
        except Exception:
            self._forget(handle_id)
            raise
        if not attached:
            logger.debug("登録先の要素が見つかりません: %s", target)
        return PlaywrightListenerHandle(self, handle_id)

    async def observe_mutations(self, callback: MutationCallback) -> PlaywrightListenerHandle:
        handle_id = self._allocate()
        self._mutation_callbacks[handle_id] = callback
        try:
            await self._page.evaluate(_OBSERVE_JS, handle_id)
        except Exception:
            self._forget(handle_id)
            raise
        return PlaywrightListenerHandle(self, handle_id)

    async def release(self, handle_id: int) -> None:
        """登録を解除する。ページ側の解除に失敗しても Python 側の登録は必ず消す。"""
        from playwright.async_api import Error as PlaywrightError

        self._forget(handle_id)
        if self._page.is_closed():
            return
        try:
            await self._page.evaluate(_RELEASE_JS, handle_id)
        except PlaywrightError as exc:
            logger.debug("ページ側のリスナー解除をスキップ: %s", exc)

    # -------------------------------------------------------------------
    # 内部ヘルパー
    # -------------------------------------------------------------------

    def _allocate(self) -> int:
        self._next_id += 1
        return self._next_id

    def _forget(self, handle_id: int) -> None:
        self._event_callbacks.pop(handle_id, None)
        self._mutation_callbacks.pop(handle_id, None)
        self._persistent.pop(handle_id, None)

    async def _on_binding(self, source: Any, payload: str) -> None:
        """ページ側から転送されたイベントを該当コールバックに配送する。"""
        try:
            data = json.loads(payload)
            handle_id = int(data["handle"])
            if "mutation" in data:
                batch = MutationBatch.model_validate(data["mutation"])
            else:
                event = DomEvent.model_validate(data["event"])
        except (ValueError, KeyError, TypeError, ValidationError) as exc:
            logger.warning("不正なイベントデータを破棄しました: %s", exc)
            return

        if "mutation" in data:
            mutation_callback = self._mutation_callbacks.get(handle_id)
            if mutation_callback is not None:
                await mutation_callback(batch)
            return

        event_callback = self._event_callbacks.get(handle_id)
        if event_callback is not None:
            await event_callback(event)

    async def _on_document_loaded(self, page: Any) -> None:
        """新しいドキュメントに document / window / MutationObserver の登録を復元する。"""
        from playwright.async_api import Error as PlaywrightError

        try:
            for handle_id, (target, event_type, capture) in list(self._persistent.items()):
                await self._page.evaluate(
                    _LISTEN_JS, [handle_id, target, event_type, capture],
                )
            for handle_id in list(self._mutation_callbacks):
                await self._page.evaluate(_OBSERVE_JS, handle_id)
        except PlaywrightError as exc:
            logger.warning("ページ再読み込み後のリスナー復元に失敗しました: %s", exc)
            return
        logger.debug("リスナーを復元しました: %s", self._page.url)
