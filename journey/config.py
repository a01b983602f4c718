"""
設定 — プロジェクトファイル・環境変数・CLI 引数からの設定読み込み

CLI 引数 > 環境変数 > プロジェクトファイル（journey.yaml） > デフォルト値
の優先順位で適用される。

環境変数一覧:
  JOURNEY_HEADED            : ブラウザ表示モード（true/false, デフォルト: true）
  JOURNEY_OUTPUT_DIR        : 成果物ディレクトリ（デフォルト: artifacts）
  JOURNEY_SCRIPT_DIALECT    : スクリプト形式（typescript/python, デフォルト: typescript）
  JOURNEY_TEST_ID_ATTRIBUTE : テスト用属性名（デフォルト: data-testid）
  JOURNEY_ACTION_TIMEOUT_MS : 操作タイムアウト（デフォルト: 10000）
  JOURNEY_VIEWPORT_WIDTH    : ビューポート幅（デフォルト: 1280）
  JOURNEY_VIEWPORT_HEIGHT   : ビューポート高さ（デフォルト: 720）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .core.script_writer import DIALECTS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "journey.yaml"

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_HEADED = "JOURNEY_HEADED"
_ENV_OUTPUT_DIR = "JOURNEY_OUTPUT_DIR"
_ENV_SCRIPT_DIALECT = "JOURNEY_SCRIPT_DIALECT"
_ENV_TEST_ID_ATTRIBUTE = "JOURNEY_TEST_ID_ATTRIBUTE"
_ENV_ACTION_TIMEOUT_MS = "JOURNEY_ACTION_TIMEOUT_MS"
_ENV_VIEWPORT_WIDTH = "JOURNEY_VIEWPORT_WIDTH"
_ENV_VIEWPORT_HEIGHT = "JOURNEY_VIEWPORT_HEIGHT"

_INT_ENV_KEYS = {
    _ENV_ACTION_TIMEOUT_MS: "action_timeout_ms",
    _ENV_VIEWPORT_WIDTH: "viewport_width",
    _ENV_VIEWPORT_HEIGHT: "viewport_height",
}


class ConfigError(Exception):
    """設定ファイルを読み込めない場合のエラー。"""


# ---------------------------------------------------------------------------
# 設定データクラス
# ---------------------------------------------------------------------------

@dataclass
class RecorderConfig:
    """記録ツールの実行時設定。

    Attributes:
        headed: ブラウザ表示モード（True=表示, False=ヘッドレス）
        viewport_width: ビューポート幅
        viewport_height: ビューポート高さ
        output_dir: 成果物ディレクトリパス
        script_dialect: 生成スクリプトの形式
        test_id_attribute: セレクタ生成で最優先するテスト用属性
        action_timeout_ms: 生成スクリプトの操作タイムアウト
        fallback_url: 空ログのスクリプトで遷移する URL
    """

    headed: bool = True
    viewport_width: int = 1280
    viewport_height: int = 720
    output_dir: str = "artifacts"
    script_dialect: str = "typescript"
    test_id_attribute: str = "data-testid"
    action_timeout_ms: int = 10000
    fallback_url: str = "about:blank"


def _parse_bool(value: str) -> bool:
    """文字列を bool に変換する。

    Args:
        value: "true", "1", "yes" → True、それ以外 → False

    Returns:
        変換結果
    """
    return value.lower() in ("true", "1", "yes")


# ---------------------------------------------------------------------------
# プロジェクトファイルからの読み込み
# ---------------------------------------------------------------------------

def load_config_file(path: Path, config: Optional[RecorderConfig] = None) -> RecorderConfig:
    """YAML のプロジェクトファイルを設定に適用する。

    ファイルが存在しない場合は config をそのまま返す。
    未知のキーは警告を出して無視する。

    Raises:
        ConfigError: YAML が不正、またはトップレベルがマッピングでない場合
    """
    if config is None:
        config = RecorderConfig()

    path = Path(path)
    if not path.exists():
        return config

    yaml = YAML(typ="safe")
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.load(f)
    except (OSError, YAMLError) as exc:
        raise ConfigError(f"設定ファイルを読み込めません: {path}: {exc}") from exc

    if data is None:
        return config
    if not isinstance(data, Mapping):
        raise ConfigError(f"設定ファイルのトップレベルはマッピングである必要があります: {path}")

    known = {f.name for f in fields(RecorderConfig)}
    for key, value in data.items():
        if key not in known:
            logger.warning("未知の設定キーを無視します: %s", key)
            continue
        setattr(config, key, value)

    _validate(config)
    logger.info("設定ファイルを読み込みました: %s", path)
    return config


# ---------------------------------------------------------------------------
# 環境変数からの読み込み
# ---------------------------------------------------------------------------

def load_config_from_env(config: Optional[RecorderConfig] = None) -> RecorderConfig:
    """環境変数を設定に適用する。

    設定されていない環境変数は既存の値を維持する。

    Returns:
        環境変数を適用した設定
    """
    if config is None:
        config = RecorderConfig()

    if _ENV_HEADED in os.environ:
        config.headed = _parse_bool(os.environ[_ENV_HEADED])

    if _ENV_OUTPUT_DIR in os.environ:
        config.output_dir = os.environ[_ENV_OUTPUT_DIR]

    if _ENV_SCRIPT_DIALECT in os.environ:
        val = os.environ[_ENV_SCRIPT_DIALECT]
        if val in DIALECTS:
            config.script_dialect = val
        else:
            logger.warning("%s の値が不正です: %s", _ENV_SCRIPT_DIALECT, val)

    if _ENV_TEST_ID_ATTRIBUTE in os.environ:
        config.test_id_attribute = os.environ[_ENV_TEST_ID_ATTRIBUTE]

    for env_key, attr in _INT_ENV_KEYS.items():
        if env_key in os.environ:
            try:
                setattr(config, attr, int(os.environ[env_key]))
            except ValueError:
                logger.warning("%s の値が不正です: %s", env_key, os.environ[env_key])

    logger.debug("設定を読み込みました: %s", config)
    return config


def load_config(
    project_dir: Path = Path("."),
    overrides: Optional[Mapping[str, Any]] = None,
) -> RecorderConfig:
    """プロジェクトファイル → 環境変数 → CLI 引数の順に設定を構築する。

    Args:
        project_dir: journey.yaml を探すディレクトリ
        overrides: CLI 引数など最優先で適用する値（None の値は無視）

    Returns:
        構築された設定
    """
    config = load_config_file(Path(project_dir) / DEFAULT_CONFIG_FILE)
    config = load_config_from_env(config)
    return apply_overrides(config, overrides or {})


def apply_overrides(config: RecorderConfig, overrides: Mapping[str, Any]) -> RecorderConfig:
    """None 以外の値だけを設定に上書きする。"""
    for key, value in overrides.items():
        if value is None:
            continue
        if not hasattr(config, key):
            raise ConfigError(f"未知の設定キーです: {key}")
        setattr(config, key, value)
    _validate(config)
    return config


def _validate(config: RecorderConfig) -> None:
    if config.script_dialect not in DIALECTS:
        raise ConfigError(
            f"script_dialect が不正です: {config.script_dialect}"
            f"（使用可能: {', '.join(DIALECTS)}）"
        )
    if not isinstance(config.action_timeout_ms, int) or config.action_timeout_ms < 0:
        raise ConfigError(f"action_timeout_ms が不正です: {config.action_timeout_ms}")
