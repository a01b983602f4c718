"""
RecordingSession — 記録対象ページのライフサイクル

ブラウザを起動して対象 URL を開き、キャプチャブリッジを注入した上で
EventRecorder を用意する。close() は記録中なら停止してからブラウザを閉じる。
CLI の record コマンドと MCP サーバーの journey_open / journey_close が共有する。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from ..config import RecorderConfig
from ..core.selector import SelectorSynthesizer
from ..recorder.playwright_host import PlaywrightHost
from ..recorder.session import EventRecorder

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page

logger = logging.getLogger(__name__)


class RecordingSession:
    """ブラウザ 1 つ・ページ 1 つ分の記録セッション。

    使用例::

        async with RecordingSession(config) as session:
            recorder = await session.open("https://example.com/")
            await recorder.start()
            await session.wait_closed()
            events = await recorder.stop()
    """

    def __init__(self, config: Optional[RecorderConfig] = None) -> None:
        self._config = config or RecorderConfig()
        self._pw: Any = None
        self._browser: Optional[Browser] = None
        self._page: Optional[Page] = None
        self._host: Optional[PlaywrightHost] = None
        self._recorder: Optional[EventRecorder] = None

    @property
    def is_open(self) -> bool:
        return self._recorder is not None

    @property
    def page(self) -> Optional[Page]:
        return self._page

    @property
    def host(self) -> Optional[PlaywrightHost]:
        return self._host

    @property
    def recorder(self) -> Optional[EventRecorder]:
        return self._recorder

    async def open(self, url: str, headed: Optional[bool] = None) -> EventRecorder:
        """ブラウザを起動して url を開き、記録前の EventRecorder を返す。

        Args:
            url: 記録対象ページ
            headed: ブラウザウィンドウを表示するか。None なら設定値を使う

        Raises:
            RuntimeError: 既にページを開いている場合
        """
        if self._pw is not None:
            raise RuntimeError("既にページを開いています。先に close() を呼んでください。")

        from playwright.async_api import async_playwright

        cfg = self._config
        headed = cfg.headed if headed is None else headed
        logger.info("ブラウザを起動しています... (headed=%s)", headed)

        try:
            self._pw = await async_playwright().start()
            self._browser = await self._pw.chromium.launch(headless=not headed)
            context = await self._browser.new_context(
                viewport={"width": cfg.viewport_width, "height": cfg.viewport_height},
            )
            self._page = await context.new_page()

            host = PlaywrightHost(self._page)
            await host.install()
            await self._page.goto(url)
            await self._page.wait_for_load_state("domcontentloaded")
        except Exception:
            logger.exception("ページを開けませんでした: %s", url)
            await self._shutdown()
            raise

        self._host = host
        self._recorder = EventRecorder(
            host,
            synthesizer=SelectorSynthesizer(host.document, cfg.test_id_attribute),
        )
        logger.info("記録対象ページを開きました: %s", url)
        return self._recorder

    async def wait_closed(self) -> None:
        """利用者がページを閉じるまで待つ。"""
        if self._page is None:
            return
        await self._page.wait_for_event("close", timeout=0)

    async def close(self) -> None:
        """記録中なら停止し、ブラウザを閉じる。開いていなければ何もしない。"""
        if self._recorder is not None and self._recorder.is_recording:
            await self._recorder.stop()
        await self._shutdown()

    async def _shutdown(self) -> None:
        if self._pw is None:
            return
        try:
            if self._browser is not None:
                await self._browser.close()
            await self._pw.stop()
        except Exception:
            logger.exception("ブラウザの終了中にエラーが発生しました")
        finally:
            self._pw = None
            self._browser = None
            self._page = None
            self._host = None
            self._recorder = None
            logger.info("ブラウザを終了しました")

    async def __aenter__(self) -> RecordingSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
