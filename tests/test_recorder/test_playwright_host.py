"""
PlaywrightHost テスト — Playwright Page 上のキャプチャホスト

実際のブラウザは起動せず、Page をモックしてブリッジの注入、
リスナー登録、バインディング経由のイベント配送、再読み込み後の復元を検証する。
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from journey.recorder.host import DomEvent, MutationBatch
from journey.recorder.playwright_host import BINDING_NAME, PlaywrightHost


@pytest.fixture
def page() -> MagicMock:
    page = MagicMock()
    page.url = "https://example.com/"
    page.expose_binding = AsyncMock()
    page.add_init_script = AsyncMock()
    page.evaluate = AsyncMock(return_value=True)
    page.is_closed.return_value = False
    return page


def run(coro):
    return asyncio.run(coro)


class Collector:
    """受け取ったイベントを溜めるコールバック。"""

    def __init__(self) -> None:
        self.received: list = []

    async def __call__(self, item) -> None:
        self.received.append(item)


class TestInstall:
    """ブリッジ注入のテスト。"""

    def test_install(self, page: MagicMock):
        host = PlaywrightHost(page)
        run(host.install())

        page.expose_binding.assert_awaited_once()
        assert page.expose_binding.await_args.args[0] == BINDING_NAME
        script = page.add_init_script.await_args.kwargs["script"]
        assert "window.__journey" in script
        page.evaluate.assert_awaited_once_with(script)
        page.on.assert_called_once()
        assert page.on.call_args.args[0] == "domcontentloaded"

    def test_install_is_idempotent(self, page: MagicMock):
        host = PlaywrightHost(page)

        async def scenario():
            await host.install()
            await host.install()

        run(scenario())
        page.expose_binding.assert_awaited_once()

    def test_current_url(self, page: MagicMock):
        assert run(PlaywrightHost(page).current_url()) == "https://example.com/"


class TestListeners:
    """listen / release とバインディング経由の配送。"""

    def test_listen_and_dispatch(self, page: MagicMock):
        host = PlaywrightHost(page)
        collector = Collector()

        async def scenario():
            handle = await host.listen("document", "click", collector, capture=True)
            payload = {
                "handle": 1,
                "event": {
                    "type": "click",
                    "event_id": 3,
                    "document_id": "k3x-9f",
                    "url": "https://example.com/",
                    "target": {"tag": "button", "text": "Go"},
                },
            }
            await host._on_binding(None, json.dumps(payload))
            return handle

        run(scenario())
        page.evaluate.assert_awaited_once()
        assert page.evaluate.await_args.args[1] == [1, "document", "click", True]
        (event,) = collector.received
        assert isinstance(event, DomEvent)
        assert event.event_id == 3
        assert event.document_id == "k3x-9f"
        assert event.target is not None and event.target.tag == "button"

    def test_mutation_dispatch(self, page: MagicMock):
        host = PlaywrightHost(page)
        collector = Collector()

        async def scenario():
            await host.observe_mutations(collector)
            payload = {"handle": 1, "mutation": {"added": [{"root": {"tag": "a", "ref": "4"}}]}}
            await host._on_binding(None, json.dumps(payload))

        run(scenario())
        (batch,) = collector.received
        assert isinstance(batch, MutationBatch)
        assert batch.added[0].root.ref == "4"

    def test_invalid_payload_is_dropped(self, page: MagicMock):
        host = PlaywrightHost(page)
        collector = Collector()

        async def scenario():
            await host.listen("document", "click", collector)
            await host._on_binding(None, "not json")
            await host._on_binding(None, json.dumps({"handle": 1}))

        run(scenario())
        assert collector.received == []

    def test_release_forgets_callback(self, page: MagicMock):
        host = PlaywrightHost(page)
        collector = Collector()

        async def scenario():
            handle = await host.listen("document", "click", collector)
            await handle.release()
            await host._on_binding(None, json.dumps({
                "handle": 1, "event": {"type": "click", "event_id": 1},
            }))

        run(scenario())
        assert host.active_handles == 0
        assert collector.received == []

    def test_release_on_closed_page(self, page: MagicMock):
        host = PlaywrightHost(page)

        async def scenario():
            handle = await host.listen("document", "click", Collector())
            page.is_closed.return_value = True
            page.evaluate.reset_mock()
            await handle.release()

        run(scenario())
        page.evaluate.assert_not_awaited()
        assert host.active_handles == 0

    def test_release_tolerates_page_error(self, page: MagicMock):
        from playwright.async_api import Error as PlaywrightError

        host = PlaywrightHost(page)

        async def scenario():
            handle = await host.listen("document", "click", Collector())
            page.evaluate.side_effect = PlaywrightError("Execution context was destroyed")
            await handle.release()

        run(scenario())
        assert host.active_handles == 0

    def test_failed_listen_is_not_kept(self, page: MagicMock):
        page.evaluate.side_effect = RuntimeError("target closed")
        host = PlaywrightHost(page)

        with pytest.raises(RuntimeError):
            run(host.listen("document", "click", Collector()))
        assert host.active_handles == 0


class TestReload:
    """ページ再読み込み後の登録復元。"""

    def test_restores_document_window_and_observer(self, page: MagicMock):
        host = PlaywrightHost(page)

        async def scenario():
            await host.listen("document", "click", Collector(), capture=True)
            await host.listen("window", "popstate", Collector())
            await host.listen("ref:9", "click", Collector(), capture=True)
            await host.observe_mutations(Collector())
            page.evaluate.reset_mock()
            await host._on_document_loaded(page)

        run(scenario())
        restored = [c.args[1] for c in page.evaluate.await_args_list]
        assert [1, "document", "click", True] in restored
        assert [2, "window", "popstate", False] in restored
        assert 4 in restored
        assert all(not (isinstance(a, list) and a[1] == "ref:9") for a in restored)


class TestBridgeScript:
    """注入スクリプトの要素参照とイベント識別子。"""

    @pytest.fixture
    def bridge(self, page: MagicMock) -> str:
        run(PlaywrightHost(page).install())
        return page.add_init_script.await_args.kwargs["script"]

    def test_events_carry_document_id(self, bridge: str):
        assert "document_id: documentId" in bridge

    def test_collected_elements_leave_ref_table(self, bridge: str):
        assert "new FinalizationRegistry((ref) => refs.delete(ref))" in bridge
        assert "reaper.register(element, ref, element)" in bridge

    def test_release_forgets_element_ref(self, bridge: str):
        release = bridge[bridge.index("function release("):]
        assert "forgetRef(registration.ref)" in release
