"""
Interactivity Classifier — 操作対象要素の判定

クリック記録の対象とすべき要素かどうかを、固定のルールセットで判定する。
副作用のない純粋な述語で、例外は送出しない。
"""

from __future__ import annotations

from .dom import ElementInfo

# ---------------------------------------------------------------------------
# 判定ルール
# ---------------------------------------------------------------------------

INTERACTIVE_TAGS = frozenset({"a", "button", "input", "select", "textarea"})

INTERACTIVE_ROLES = frozenset({
    "button", "link", "menuitem", "tab", "checkbox", "radio",
})

CLICKABLE_CLASS = "clickable"


def is_interactive(element: ElementInfo) -> bool:
    """要素がインタラクティブ（操作対象）かどうかを判定する。

    以下のいずれかを満たせば True:
      1. タグが a / button / input / select / textarea
      2. ネイティブの click ハンドラ（onclick）を持つ
      3. role 属性が button / link / menuitem / tab / checkbox / radio
      4. clickable クラスを持つ
      5. 計算済みスタイルの cursor が pointer

    Args:
        element: 判定対象の要素スナップショット

    Returns:
        インタラクティブなら True
    """
    return (
        element.tag.lower() in INTERACTIVE_TAGS
        or element.has_click_handler
        or element.role in INTERACTIVE_ROLES
        or CLICKABLE_CLASS in element.class_list
        or (element.cursor or "").strip().lower() == "pointer"
    )
