"""
Selector Synthesizer — 要素を一意に特定するセレクタの生成

記録対象の要素から、安定性の高い順に並べたセレクタ候補リストを作り、
ライブドキュメント上で 1 件だけマッチする最初の候補を採用する。

候補の優先順位:
  1. テスト用属性（data-testid）
  2. id
  3. aria-label
  4. role + 表示テキスト
  5. a / button のテキスト一致
  6. 構造パス（id を持つ祖先を起点に nth-of-type で辿る）

一意な候補がない場合は最初の候補（なければ "*"）を返す。
生成中の想定外の例外は呼び出し元に伝播させず、"body" を返す。
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .dom import Document, ElementInfo, SelectorSyntaxError

logger = logging.getLogger(__name__)

# 一意な候補がなく、候補リストも空の場合の戻り値
WILDCARD_SELECTOR = "*"

# 生成処理自体が失敗した場合の戻り値
ROOT_FALLBACK_SELECTOR = "body"

DEFAULT_TEST_ID_ATTRIBUTE = "data-testid"

_TEXT_MATCH_TAGS = ("a", "button")


# ---------------------------------------------------------------------------
# エスケープ
# ---------------------------------------------------------------------------

def css_escape(value: str) -> str:
    """CSSOM の CSS.escape() と同じ規則で識別子をエスケープする。

    Args:
        value: エスケープ対象の文字列

    Returns:
        CSS 識別子として安全な文字列
    """
    result: list[str] = []
    first = value[:1]
    for index, ch in enumerate(value):
        code = ord(ch)
        if code == 0:
            result.append("\ufffd")
        elif 0x01 <= code <= 0x1F or code == 0x7F:
            result.append(f"\\{code:x} ")
        elif index == 0 and ch.isascii() and ch.isdigit():
            result.append(f"\\{code:x} ")
        elif index == 1 and ch.isascii() and ch.isdigit() and first == "-":
            result.append(f"\\{code:x} ")
        elif index == 0 and ch == "-" and len(value) == 1:
            result.append("\\-")
        elif code >= 0x80 or ch in "-_" or (ch.isascii() and ch.isalnum()):
            result.append(ch)
        else:
            result.append("\\" + ch)
    return "".join(result)


def quote_css_string(value: str) -> str:
    """CSS 文字列リテラル（ダブルクォート）として引用する。"""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\a ")
        .replace("\r", "\\d ")
    )
    return f'"{escaped}"'


# ---------------------------------------------------------------------------
# 候補ジェネレータ
# ---------------------------------------------------------------------------

CandidateGenerator = Callable[[ElementInfo], Optional[str]]


def _aria_label_candidate(element: ElementInfo) -> Optional[str]:
    label = element.attributes.get("aria-label")
    if label:
        return f'[aria-label="{css_escape(label)}"]'
    return None


def _id_candidate(element: ElementInfo) -> Optional[str]:
    if element.element_id:
        return f"#{css_escape(element.element_id)}"
    return None


def _role_text_candidate(element: ElementInfo) -> Optional[str]:
    role = element.role
    text = element.visible_text
    if role and text:
        return f"[role={quote_css_string(role)}]:has-text({quote_css_string(text)})"
    return None


def _tag_text_candidate(element: ElementInfo) -> Optional[str]:
    tag = element.tag.lower()
    text = element.visible_text
    if tag in _TEXT_MATCH_TAGS and text:
        return f"{tag}:has-text({quote_css_string(text)})"
    return None


def structural_path(element: ElementInfo) -> Optional[str]:
    """要素からルートまで辿った構造パスを生成する。

    id を持つノードに到達したらそこを起点にして打ち切る。
    同じタグの兄弟の中で 2 番目以降なら :nth-of-type(n) を付ける。

    Args:
        element: 対象要素

    Returns:
        " > " 区切りのパス。祖先情報がなければ None。
    """
    segments: list[str] = []
    for node in element.ancestry:
        if node.id:
            segments.append(f"#{css_escape(node.id)}")
            break
        segment = node.tag.lower()
        if node.nth_of_type > 1:
            segment += f":nth-of-type({node.nth_of_type})"
        segments.append(segment)
    if not segments:
        return None
    segments.reverse()
    return " > ".join(segments)


# ---------------------------------------------------------------------------
# SelectorSynthesizer 本体
# ---------------------------------------------------------------------------

class SelectorSynthesizer:
    """要素を一意に特定するセレクタを生成する。

    使用例::

        synthesizer = SelectorSynthesizer(PageDocument(page))
        selector = await synthesizer.synthesize(element)

    Attributes:
        document: 一意性の検証に使うドキュメント
        test_id_attribute: テスト用属性名（デフォルト: data-testid）
    """

    def __init__(
        self,
        document: Document,
        test_id_attribute: str = DEFAULT_TEST_ID_ATTRIBUTE,
    ) -> None:
        self.document = document
        self.test_id_attribute = test_id_attribute
        self._generators: list[CandidateGenerator] = [
            self._test_id_candidate,
            _id_candidate,
            _aria_label_candidate,
            _role_text_candidate,
            _tag_text_candidate,
            structural_path,
        ]

    def candidates(self, element: ElementInfo) -> list[str]:
        """優先順位順のセレクタ候補リストを返す。

        各ジェネレータの失敗はその候補を欠落させるだけで、例外は送出しない。
        """
        result: list[str] = []
        for generate in self._generators:
            try:
                candidate = generate(element)
            except Exception:
                logger.debug("セレクタ候補の生成をスキップ: %s", generate, exc_info=True)
                continue
            if candidate and candidate not in result:
                result.append(candidate)
        return result

    async def synthesize(self, element: ElementInfo) -> str:
        """要素のセレクタを生成する。

        Args:
            element: 対象要素

        Returns:
            1 件だけマッチする最初の候補。一意な候補がなければ最初の候補、
            候補がなければ "*"、生成自体が失敗すれば "body"。
        """
        try:
            candidates = self.candidates(element)
            unique = await self._first_unique(candidates)
            if unique is not None:
                return unique
            # 一意な候補がない場合は最初の候補をそのまま使う
            if candidates:
                logger.debug("一意なセレクタが見つかりません: %s", candidates[0])
                return candidates[0]
            return WILDCARD_SELECTOR
        except Exception:
            logger.exception("セレクタ生成に失敗しました")
            return ROOT_FALLBACK_SELECTOR

    async def _first_unique(self, candidates: list[str]) -> Optional[str]:
        for candidate in candidates:
            try:
                count = await self.document.count(candidate)
            except SelectorSyntaxError:
                continue
            if count == 1:
                return candidate
        return None

    def _test_id_candidate(self, element: ElementInfo) -> Optional[str]:
        test_id = element.attributes.get(self.test_id_attribute)
        if test_id:
            return f"[{self.test_id_attribute}={quote_css_string(test_id)}]"
        return None
