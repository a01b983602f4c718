"""
Event モデル — 記録されたユーザー操作とイベントログ

キャプチャした操作を不変の Event として表現し、
追記専用・タイムスタンプ非減少の EventLog に蓄積する。

主な機能:
  - Event: click / input / navigation の不変レコード
  - EventLog: 追記専用ログ（close 後は追記不可、snapshot で不変タプルを返す）
  - dump_events / load_events: JSON 形式での入出力
"""

from __future__ import annotations

import enum
import json
import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event
# ---------------------------------------------------------------------------

class EventKind(str, enum.Enum):
    """記録イベントの種別。"""

    CLICK = "click"
    INPUT = "input"
    NAVIGATION = "navigation"


class Event(BaseModel):
    """記録された単一のユーザー操作。

    生成後は変更できない（frozen）。JSON 上のキーは
    type / selector / value / timestamp / url / elementType / text。

    Attributes:
        kind: 操作種別
        selector: 対象要素のセレクタ（click / input のみ）
        value: 入力値（input のみ。チェックボックス系は bool、それ以外は str）
        timestamp: 記録時刻（エポックからのミリ秒）
        url: 記録時のドキュメント URL
        element_type: 小文字のタグ名（click / input のみ）
        text: 表示テキスト（click のみ、空文字可）
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: EventKind = Field(..., alias="type")
    selector: Optional[str] = None
    value: Optional[Union[bool, str]] = None
    timestamp: int = Field(..., ge=0)
    url: str = ""
    element_type: Optional[str] = Field(default=None, alias="elementType")
    text: Optional[str] = None

    @model_validator(mode="after")
    def _check_kind_fields(self) -> "Event":
        if self.kind is EventKind.NAVIGATION:
            if self.selector is not None or self.value is not None or self.text is not None:
                raise ValueError("navigation イベントは selector / value / text を持てません")
            return self

        if not self.selector:
            raise ValueError(f"{self.kind.value} イベントには selector が必要です")
        if self.kind is EventKind.CLICK and self.value is not None:
            raise ValueError("click イベントは value を持てません")
        if self.kind is EventKind.INPUT and self.text is not None:
            raise ValueError("input イベントは text を持てません")
        return self

    # ----- ファクトリ -----

    @classmethod
    def click(
        cls,
        selector: str,
        *,
        timestamp: int,
        url: str,
        element_type: str,
        text: str = "",
    ) -> "Event":
        return cls(
            kind=EventKind.CLICK,
            selector=selector,
            timestamp=timestamp,
            url=url,
            element_type=element_type,
            text=text,
        )

    @classmethod
    def input(
        cls,
        selector: str,
        value: Union[bool, str],
        *,
        timestamp: int,
        url: str,
        element_type: str,
    ) -> "Event":
        return cls(
            kind=EventKind.INPUT,
            selector=selector,
            value=value,
            timestamp=timestamp,
            url=url,
            element_type=element_type,
        )

    @classmethod
    def navigation(cls, url: str, *, timestamp: int) -> "Event":
        return cls(kind=EventKind.NAVIGATION, url=url, timestamp=timestamp)

    def to_dict(self) -> dict:
        """JSON 出力用の辞書を返す（存在しないフィールドは省略）。"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# EventLog
# ---------------------------------------------------------------------------

class EventLogClosedError(Exception):
    """close 済みの EventLog に追記しようとした場合のエラー。"""


class EventLog:
    """追記専用のイベントログ。

    タイムスタンプは追記順に非減少でなければならない。
    close() 後は追記できず、snapshot() が不変のタプルを返す。
    """

    def __init__(self) -> None:
        self._events: list[Event] = []
        self._closed = False

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(tuple(self._events))

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_timestamp(self) -> Optional[int]:
        if not self._events:
            return None
        return self._events[-1].timestamp

    def append(self, event: Event) -> None:
        """イベントを追記する。

        Raises:
            EventLogClosedError: close 済みの場合
            ValueError: タイムスタンプが直前のイベントより小さい場合
        """
        if self._closed:
            raise EventLogClosedError("close 済みの EventLog には追記できません")
        last = self.last_timestamp
        if last is not None and event.timestamp < last:
            raise ValueError(
                f"タイムスタンプが減少しています: {event.timestamp} < {last}"
            )
        self._events.append(event)

    def close(self) -> tuple[Event, ...]:
        """ログを close し、スナップショットを返す。"""
        self._closed = True
        return self.snapshot()

    def snapshot(self) -> tuple[Event, ...]:
        return tuple(self._events)


# ---------------------------------------------------------------------------
# JSON 入出力
# ---------------------------------------------------------------------------

def dump_events(events: Iterable[Event]) -> str:
    """イベント列を JSON 文字列に変換する。"""
    return json.dumps(
        [event.to_dict() for event in events],
        ensure_ascii=False,
        indent=2,
    )


def load_events(text: str) -> tuple[Event, ...]:
    """JSON 文字列からイベント列を読み込む。

    Raises:
        ValueError: JSON が配列でない、またはイベントとして不正な場合
    """
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("イベントログの JSON は配列である必要があります")
    return tuple(Event.model_validate(item) for item in data)


def save_events(path: Path, events: Sequence[Event]) -> Path:
    """イベント列を JSON ファイルに保存する。"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_events(events), encoding="utf-8")
    logger.info("イベントログを保存しました: %s (%d 件)", path, len(events))
    return path


def read_events(path: Path) -> tuple[Event, ...]:
    """JSON ファイルからイベント列を読み込む。"""
    return load_events(Path(path).read_text(encoding="utf-8"))
