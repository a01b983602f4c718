"""
ReportAssembler — 記録結果の HTML レポート生成

イベントログと生成済みスクリプトを受け取り、Jinja2 テンプレート
（templates/report.html.j2）で 1 枚の HTML レポートを組み立てる。

イベントが 1 件もない場合はレポートを生成せず、警告を出して None を返す。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Optional, Sequence
from urllib.parse import urlsplit

from jinja2 import Environment, FileSystemLoader

from .events import Event

logger = logging.getLogger(__name__)

# テンプレートディレクトリのパス
_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class ReportDocument:
    """組み立て済みのレポート。

    Attributes:
        content: HTML 文字列
        website: 記録対象のホスト名
        generated_at: 生成日時
        event_count: 掲載イベント数
    """

    content: str
    website: str
    generated_at: datetime
    event_count: int


class ReportAssembler:
    """イベントログとスクリプトから HTML レポートを組み立てる。

    使用例::

        assembler = ReportAssembler()
        report = assembler.assemble(snapshot, script, url=page.url)
        if report is None:
            ...  # 記録なし
    """

    def __init__(self, tz: Optional[tzinfo] = None) -> None:
        """ReportAssembler を初期化する。

        Args:
            tz: 日時表示のタイムゾーン。None の場合はローカルタイム。
        """
        self._tz = tz
        self._env = Environment(
            loader=FileSystemLoader(str(_TEMPLATES_DIR)),
            autoescape=True,
        )

    def assemble(
        self,
        events: Sequence[Event],
        script: str,
        url: str = "",
        generated_at: Optional[datetime] = None,
    ) -> Optional[ReportDocument]:
        """レポートを組み立てる。

        Args:
            events: close 済みイベントログのスナップショット
            script: ScriptWriter が生成したスクリプト
            url: 記録対象ページの URL（ホスト名の表示に使用）
            generated_at: 生成日時。None の場合は現在時刻。

        Returns:
            ReportDocument。イベントが空の場合は None。
        """
        if not events:
            logger.warning("記録されたイベントがないため、レポートを生成しません")
            return None

        if generated_at is None:
            generated_at = datetime.now(self._tz)

        website = urlsplit(url or events[-1].url).hostname or ""
        template = self._env.get_template("report.html.j2")
        content = template.render(
            website=website,
            generated_at=self._format_datetime(generated_at),
            events=[self._event_block(event) for event in events],
            script=script,
        )

        logger.info("レポートを組み立てました: %s (%d 件)", website, len(events))
        return ReportDocument(
            content=content,
            website=website,
            generated_at=generated_at,
            event_count=len(events),
        )

    # -------------------------------------------------------------------
    # 内部ヘルパー
    # -------------------------------------------------------------------

    def _event_block(self, event: Event) -> dict[str, Any]:
        value: Optional[str] = None
        if isinstance(event.value, bool):
            value = "true" if event.value else "false"
        elif event.value is not None:
            value = event.value

        return {
            "kind": event.kind.value,
            "selector": event.selector,
            "value": value,
            "timestamp": self._format_datetime(
                datetime.fromtimestamp(event.timestamp / 1000, self._tz)
            ),
        }

    def _format_datetime(self, value: datetime) -> str:
        if self._tz is not None and value.tzinfo is not None:
            value = value.astimezone(self._tz)
        return value.strftime(_TIMESTAMP_FORMAT)
