"""
DOM モデル — 要素スナップショットとセレクタ評価対象ドキュメント

キャプチャ時点の要素情報（ElementInfo）と、セレクタ候補の一意性を
検証するための Document プロトコルを定義する。

主な機能:
  - ElementInfo: イベント対象要素のシリアライズ可能なスナップショット
  - Document: セレクタのヒット件数を返すプロトコル
  - HtmlDocument: 保存済み HTML（BeautifulSoup / soupsieve）上のドキュメント
  - PageDocument: Playwright Page 上のライブドキュメント
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Optional, Protocol

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, Field
from soupsieve import SelectorSyntaxError as _SoupSyntaxError

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# エラー定義
# ---------------------------------------------------------------------------

class SelectorSyntaxError(Exception):
    """セレクタ文字列を解釈できない場合のエラー。"""


# ---------------------------------------------------------------------------
# 要素スナップショット
# ---------------------------------------------------------------------------

class NodeStep(BaseModel):
    """祖先チェーン上の 1 ノード。

    Attributes:
        tag: 小文字のタグ名
        id: id 属性（なければ None）
        nth_of_type: 同じタグの兄弟要素の中での 1 始まりの位置
    """

    tag: str
    id: Optional[str] = None
    nth_of_type: int = 1


class ElementInfo(BaseModel):
    """イベント発生時点の要素スナップショット。

    ページ側のブリッジスクリプトが生成する JSON、または
    HtmlDocument.element() から構築される。

    Attributes:
        tag: 小文字のタグ名
        attributes: 属性名 → 値
        text: textContent（未トリム）
        cursor: 計算済みスタイルの cursor
        has_click_handler: ネイティブの onclick を持つか
        checked: チェック状態（チェックボックス系のみ）
        value: 入力値（パスワード欄では常に None）
        ref: キャプチャホストがライブ要素を指すためのハンドル
        ancestry: 要素自身からルートまでのノード列
    """

    tag: str
    attributes: dict[str, str] = Field(default_factory=dict)
    text: str = ""
    cursor: Optional[str] = None
    has_click_handler: bool = False
    checked: Optional[bool] = None
    value: Optional[str] = None
    ref: Optional[str] = None
    ancestry: list[NodeStep] = Field(default_factory=list)

    @property
    def element_id(self) -> str:
        return self.attributes.get("id", "")

    @property
    def role(self) -> str:
        return self.attributes.get("role", "")

    @property
    def class_list(self) -> list[str]:
        return self.attributes.get("class", "").split()

    @property
    def input_type(self) -> str:
        """DOM の element.type 相当の値を返す。"""
        declared = self.attributes.get("type", "").strip().lower()
        if not declared and self.tag == "input":
            return "text"
        return declared

    @property
    def visible_text(self) -> str:
        return self.text.strip()


# ---------------------------------------------------------------------------
# Document プロトコル
# ---------------------------------------------------------------------------

class Document(Protocol):
    """セレクタを評価できるドキュメント。"""

    async def count(self, selector: str) -> int:
        """セレクタにマッチするノード数を返す。

        Raises:
            SelectorSyntaxError: セレクタが解釈できない場合
        """
        ...


# Playwright 拡張の :has-text("...") を soupsieve の :-soup-contains("...") に読み替える
_HAS_TEXT = re.compile(r":has-text\(")


class HtmlDocument:
    """保存済み HTML 上のドキュメント。

    オフラインでのセレクタ生成（CLI の selector コマンド）とテストで使用する。

    使用例::

        doc = HtmlDocument("<button id='go'>Go</button>")
        element = doc.element("#go")
        count = await doc.count("#go")
    """

    def __init__(self, html: str) -> None:
        self._soup = BeautifulSoup(html, "html.parser")

    @property
    def soup(self) -> BeautifulSoup:
        return self._soup

    async def count(self, selector: str) -> int:
        return len(self._select(selector))

    def element(self, selector: str) -> ElementInfo:
        """セレクタに最初にマッチした要素の ElementInfo を返す。

        Args:
            selector: CSS セレクタ

        Returns:
            要素スナップショット

        Raises:
            LookupError: マッチする要素がない場合
            SelectorSyntaxError: セレクタが解釈できない場合
        """
        matches = self._select(selector)
        if not matches:
            raise LookupError(f"要素が見つかりません: {selector}")
        return describe_tag(matches[0])

    def _select(self, selector: str) -> list[Tag]:
        translated = _HAS_TEXT.sub(":-soup-contains(", selector)
        try:
            return self._soup.select(translated)
        except (_SoupSyntaxError, NotImplementedError, ValueError) as exc:
            raise SelectorSyntaxError(str(exc)) from exc


def describe_tag(tag: Tag) -> ElementInfo:
    """BeautifulSoup の Tag から ElementInfo を構築する。

    静的 HTML には計算済みスタイルがないため、cursor はインライン
    style 属性から、has_click_handler は onclick 属性から判定する。
    """
    attributes: dict[str, str] = {}
    for name, raw in tag.attrs.items():
        attributes[name] = " ".join(raw) if isinstance(raw, list) else str(raw)

    input_type = attributes.get("type", "").lower()
    checked: Optional[bool] = None
    value: Optional[str] = None
    if tag.name in ("input", "textarea", "select"):
        if input_type in ("checkbox", "radio"):
            checked = "checked" in attributes
        elif input_type != "password":
            value = tag.get_text() if tag.name == "textarea" else attributes.get("value", "")

    return ElementInfo(
        tag=tag.name.lower(),
        attributes=attributes,
        text=tag.get_text(),
        cursor=_inline_cursor(attributes.get("style", "")),
        has_click_handler="onclick" in attributes,
        checked=checked,
        value=value,
        ancestry=_ancestry(tag),
    )


def _inline_cursor(style: str) -> Optional[str]:
    for declaration in style.split(";"):
        name, _, val = declaration.partition(":")
        if name.strip().lower() == "cursor":
            return val.strip().lower()
    return None


def _ancestry(tag: Tag) -> list[NodeStep]:
    steps: list[NodeStep] = []
    node: Optional[Tag] = tag
    while isinstance(node, Tag) and not isinstance(node, BeautifulSoup):
        nth = 1 + len(node.find_previous_siblings(node.name))
        steps.append(NodeStep(tag=node.name.lower(), id=node.get("id") or None, nth_of_type=nth))
        node = node.parent
    return steps


class PageDocument:
    """Playwright Page 上のライブドキュメント。

    Playwright のセレクタエンジンで評価するため :has-text() もそのまま使える。
    """

    def __init__(self, page: Page) -> None:
        self._page = page

    async def count(self, selector: str) -> int:
        from playwright.async_api import Error as PlaywrightError

        try:
            return await self._page.locator(selector).count()
        except PlaywrightError as exc:
            raise SelectorSyntaxError(str(exc)) from exc
