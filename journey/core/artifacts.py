"""
Artifacts — 生成物の受け渡しと保存

レポートを外部ストレージへ渡すためのリクエスト（ArtifactRequest）と、
推奨ファイル名の導出、ファイルシステムへの保存を担当する。

推奨ファイル名:
  playwright_tests/<ISO-8601 UTC タイムスタンプ（: と . を - に置換）>_<ホスト名>_report.html
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

REPORT_SUBDIR = "playwright_tests"

_TIMESTAMP_UNSAFE = re.compile(r"[:.]")


@dataclass(frozen=True)
class ArtifactRequest:
    """ストレージへの保存リクエスト。

    Attributes:
        content: 保存する内容（HTML）
        suggested_filename: 推奨ファイル名（サブディレクトリ付き相対パス）
        captured_at_url: 記録したページの URL
    """

    content: str
    suggested_filename: str
    captured_at_url: str


def iso_timestamp(moment: datetime) -> str:
    """JavaScript の Date.toISOString() 形式（UTC・ミリ秒・Z 付き）を返す。"""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S") + f".{utc.microsecond // 1000:03d}Z"


def suggest_filename(url: str, moment: Optional[datetime] = None) -> str:
    """レポートの推奨ファイル名を導出する。

    Args:
        url: 記録したページの URL
        moment: タイムスタンプ。None の場合は現在時刻。

    Returns:
        "playwright_tests/2024-03-15T10-30-45-123Z_example.com_report.html" 形式の文字列
    """
    if moment is None:
        moment = datetime.now(timezone.utc)
    stamp = _TIMESTAMP_UNSAFE.sub("-", iso_timestamp(moment))
    host = urlsplit(url).hostname or ""
    return f"{REPORT_SUBDIR}/{stamp}_{host}_report.html"


def build_request(
    content: str,
    url: str,
    moment: Optional[datetime] = None,
) -> ArtifactRequest:
    return ArtifactRequest(
        content=content,
        suggested_filename=suggest_filename(url, moment),
        captured_at_url=url,
    )


# ---------------------------------------------------------------------------
# ストレージ
# ---------------------------------------------------------------------------

class ArtifactStore(Protocol):
    """生成物を保存する外部ストレージ。"""

    def save(self, request: ArtifactRequest) -> Path:
        ...


class FileArtifactStore:
    """ローカルファイルシステムへの保存。

    Attributes:
        base_dir: 保存先のベースディレクトリ（デフォルト: artifacts/）
    """

    def __init__(self, base_dir: Path = Path("artifacts")) -> None:
        self.base_dir = Path(base_dir)

    def save(self, request: ArtifactRequest) -> Path:
        """リクエストの内容を base_dir 配下に保存する。

        Raises:
            ValueError: 推奨ファイル名が base_dir の外を指す場合
        """
        path = (self.base_dir / request.suggested_filename).resolve()
        if not path.is_relative_to(self.base_dir.resolve()):
            raise ValueError(f"保存先が不正です: {request.suggested_filename}")

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(request.content, encoding="utf-8")
        logger.info("レポートを保存しました: %s (%s)", path, request.captured_at_url)
        return path
