"""
ScriptWriter — イベントログから E2E テストスクリプトを生成

close 済みのイベントログを、再生可能な Playwright スクリプトに変換する。
同じログからは常にバイト単位で同一のスクリプトが生成される。

変換規則:
  - 冒頭で最初のイベントの URL（空ログなら fallback_url）に遷移し、networkidle を待つ
  - URL が直前と変わったイベントの前に waitForUrl を 1 回だけ挿入する
  - click: networkidle 待機とクリックを並行実行
  - input: bool 値は setChecked、それ以外は fill
  - navigation: networkidle 待機のみ

出力形式（dialect）:
  - typescript: @playwright/test のテストファイル（デフォルト）
  - python: Playwright async API のスクリプト
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Sequence, Union

from .events import Event, EventKind

logger = logging.getLogger(__name__)

Dialect = Literal["typescript", "python"]

DIALECTS: tuple[str, ...] = ("typescript", "python")

DEFAULT_FALLBACK_URL = "about:blank"

DEFAULT_TIMEOUT_MS = 10000


# ---------------------------------------------------------------------------
# 中間表現
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScriptStep:
    """生成スクリプトの 1 ステップ。

    Attributes:
        op: navigate / waitForUrl / waitForNetworkIdle / click / fill / setChecked
        args: ステップ引数（URL、セレクタ、値）
    """

    op: str
    args: tuple[Union[str, bool], ...] = ()


def build_steps(
    events: Sequence[Event],
    fallback_url: str = DEFAULT_FALLBACK_URL,
) -> list[ScriptStep]:
    """イベント列をスクリプトステップ列に変換する。

    Args:
        events: close 済みイベントログのスナップショット
        fallback_url: ログが空の場合の遷移先

    Returns:
        先頭が navigate のステップリスト
    """
    start_url = events[0].url if events and events[0].url else fallback_url
    steps: list[ScriptStep] = [ScriptStep("navigate", (start_url,))]
    last_url = start_url

    for event in events:
        if event.url and event.url != last_url:
            steps.append(ScriptStep("waitForUrl", (event.url,)))
            last_url = event.url

        if event.kind is EventKind.CLICK:
            steps.append(ScriptStep("click", (event.selector or "",)))
        elif event.kind is EventKind.INPUT:
            if isinstance(event.value, bool):
                steps.append(ScriptStep("setChecked", (event.selector or "", event.value)))
            else:
                steps.append(ScriptStep("fill", (event.selector or "", event.value or "")))
        elif event.kind is EventKind.NAVIGATION:
            steps.append(ScriptStep("waitForNetworkIdle"))

    return steps


# ---------------------------------------------------------------------------
# 文字列リテラルのエスケープ
# ---------------------------------------------------------------------------

_JS_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

_PY_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def _escape(s: str, table: dict[str, str]) -> str:
    out: list[str] = []
    for ch in s:
        if ch in table:
            out.append(table[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\x{ord(ch):02x}")
        else:
            out.append(ch)
    return "".join(out)


def js_string(s: str) -> str:
    """JavaScript のシングルクォート文字列リテラルを返す。"""
    return "'" + _escape(s, _JS_ESCAPES) + "'"


def py_string(s: str) -> str:
    """Python のダブルクォート文字列リテラルを返す。"""
    return '"' + _escape(s, _PY_ESCAPES) + '"'


# ---------------------------------------------------------------------------
# ScriptWriter 本体
# ---------------------------------------------------------------------------

class ScriptWriter:
    """イベントログを Playwright スクリプトに変換するライター。

    使用例::

        writer = ScriptWriter(dialect="typescript")
        script = writer.synthesize(snapshot, fallback_url="https://example.com")
        writer.write(snapshot, Path("tests/recorded.spec.ts"))
    """

    def __init__(
        self,
        dialect: Dialect = "typescript",
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        if dialect not in DIALECTS:
            raise ValueError(
                f"未対応の出力形式です: {dialect}（使用可能: {', '.join(DIALECTS)}）"
            )
        self.dialect = dialect
        self.timeout_ms = timeout_ms

    @property
    def suffix(self) -> str:
        """出力ファイルの推奨拡張子。"""
        return ".spec.ts" if self.dialect == "typescript" else ".py"

    def synthesize(
        self,
        events: Sequence[Event],
        fallback_url: str = DEFAULT_FALLBACK_URL,
    ) -> str:
        """イベントログからスクリプト文字列を生成する。

        Args:
            events: close 済みイベントログのスナップショット
            fallback_url: ログが空の場合の遷移先

        Returns:
            スクリプトのソース文字列（末尾改行付き）
        """
        steps = build_steps(events, fallback_url)
        if self.dialect == "python":
            lines = self._render_python(steps)
        else:
            lines = self._render_typescript(steps)
        return "\n".join(lines) + "\n"

    def write(
        self,
        events: Sequence[Event],
        output_path: Path,
        fallback_url: str = DEFAULT_FALLBACK_URL,
    ) -> Path:
        """スクリプトをファイルに出力する。"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(self.synthesize(events, fallback_url), encoding="utf-8")
        logger.info("スクリプトを出力しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # TypeScript (@playwright/test)
    # -------------------------------------------------------------------

    def _render_typescript(self, steps: list[ScriptStep]) -> list[str]:
        lines = [
            "import { test, expect } from '@playwright/test';",
            "",
            "test('Recorded user journey', async ({ page }) => {",
            f"  page.setDefaultTimeout({self.timeout_ms});",
            "",
        ]
        for step in steps:
            lines.extend("  " + line for line in self._typescript_step(step))
        lines.append("});")
        return lines

    def _typescript_step(self, step: ScriptStep) -> list[str]:
        if step.op == "navigate":
            return [
                "// Initial navigation",
                f"await page.goto({js_string(str(step.args[0]))}, {{ waitUntil: 'networkidle' }});",
            ]
        if step.op == "waitForUrl":
            return [
                "// Wait for URL change",
                f"await page.waitForURL({js_string(str(step.args[0]))});",
            ]
        if step.op == "waitForNetworkIdle":
            return [
                "// Navigation",
                "await page.waitForLoadState('networkidle');",
            ]
        if step.op == "click":
            return [
                "// Click interaction",
                "await Promise.all([",
                "  page.waitForLoadState('networkidle'),",
                f"  page.click({js_string(str(step.args[0]))}, {{ timeout: {self.timeout_ms} }}),",
                "]);",
            ]
        if step.op == "fill":
            return [
                "// Input interaction",
                f"await page.fill({js_string(str(step.args[0]))}, {js_string(str(step.args[1]))});",
            ]
        if step.op == "setChecked":
            checked = "true" if step.args[1] else "false"
            return [
                "// Checkbox interaction",
                f"await page.setChecked({js_string(str(step.args[0]))}, {checked});",
            ]
        raise ValueError(f"未知のステップです: {step.op}")

    # -------------------------------------------------------------------
    # Python (Playwright async API)
    # -------------------------------------------------------------------

    def _render_python(self, steps: list[ScriptStep]) -> list[str]:
        lines = [
            "import asyncio",
            "",
            "from playwright.async_api import async_playwright",
            "",
            "",
            "async def run() -> None:",
            "    async with async_playwright() as playwright:",
            "        browser = await playwright.chromium.launch(headless=False)",
            "        page = await browser.new_page()",
            f"        page.set_default_timeout({self.timeout_ms})",
            "",
        ]
        for step in steps:
            lines.extend("        " + line for line in self._python_step(step))
        lines.extend([
            "        await browser.close()",
            "",
            "",
            'if __name__ == "__main__":',
            "    asyncio.run(run())",
        ])
        return lines

    def _python_step(self, step: ScriptStep) -> list[str]:
        if step.op == "navigate":
            return [f'await page.goto({py_string(str(step.args[0]))}, wait_until="networkidle")']
        if step.op == "waitForUrl":
            return [f"await page.wait_for_url({py_string(str(step.args[0]))})"]
        if step.op == "waitForNetworkIdle":
            return ['await page.wait_for_load_state("networkidle")']
        if step.op == "click":
            return [
                "await asyncio.gather(",
                '    page.wait_for_load_state("networkidle"),',
                f"    page.click({py_string(str(step.args[0]))}, timeout={self.timeout_ms}),",
                ")",
            ]
        if step.op == "fill":
            return [f"await page.fill({py_string(str(step.args[0]))}, {py_string(str(step.args[1]))})"]
        if step.op == "setChecked":
            return [f"await page.set_checked({py_string(str(step.args[0]))}, {bool(step.args[1])})"]
        raise ValueError(f"未知のステップです: {step.op}")
