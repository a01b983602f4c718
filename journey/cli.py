"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

journey コマンドとして以下のサブコマンドを提供する:
  - init: プロジェクト雛形生成
  - record: ブラウザ操作の記録（ページを閉じると終了）
  - script: イベントログ JSON から Playwright スクリプトを生成
  - report: イベントログ JSON から HTML レポートを生成
  - selector: 保存済み HTML に対するセレクタ生成
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer

from .config import DEFAULT_CONFIG_FILE, RecorderConfig, load_config

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "journey — ブラウザ操作を記録して Playwright テストを生成するツール\n\n"
        "基本の流れ:\n"
        "  1. journey record URL          操作を記録（ページを閉じると終了）\n"
        "  2. journey script events.json  記録からスクリプトを再生成\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="デバッグログを表示する",
    ),
) -> None:
    """ログ出力を設定する。"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(name)s - %(levelname)s - %(message)s",
    )


# ---------------------------------------------------------------------------
# init コマンド
# ---------------------------------------------------------------------------

@app.command()
def init(
    project_dir: Path = typer.Argument(
        Path("."), help="プロジェクトディレクトリ（デフォルト: カレント）",
    ),
) -> None:
    """プロジェクト雛形（成果物ディレクトリと設定テンプレート）を生成する。"""
    try:
        for d in ["artifacts", "recordings"]:
            (project_dir / d).mkdir(parents=True, exist_ok=True)

        config_path = project_dir / DEFAULT_CONFIG_FILE
        if not config_path.exists():
            config_path.write_text(
                "# journey プロジェクト設定\n"
                "headed: true\n"
                "output_dir: artifacts\n"
                "script_dialect: typescript\n"
                "test_id_attribute: data-testid\n"
                "action_timeout_ms: 10000\n",
                encoding="utf-8",
            )

        typer.echo(f"プロジェクトを初期化しました: {project_dir.resolve()}")
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# record コマンド
# ---------------------------------------------------------------------------

@app.command()
def record(
    url: Optional[str] = typer.Argument(
        None, help="記録対象の URL（省略時は対話入力）",
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="イベントログ JSON の出力先",
    ),
    dialect: Optional[str] = typer.Option(
        None, "--dialect", "-d", help="スクリプト形式 (typescript / python)",
    ),
    headless: bool = typer.Option(
        False, "--headless", help="ブラウザを表示せずに起動する",
    ),
) -> None:
    """ブラウザ操作を記録し、スクリプトとレポートを出力する。

    URL を省略すると対話的に入力を求めます。
    ブラウザのページを閉じると記録が終了します。
    """
    import asyncio

    if url is None:
        url = typer.prompt("記録する URL を入力してください")

    try:
        config = load_config(overrides={
            "script_dialect": dialect,
            "headed": False if headless else None,
        })
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    events_path = output or Path("recordings") / "events.json"

    typer.echo(f"URL: {url}")
    typer.echo("記録中... ブラウザのページを閉じると記録が終了します。\n")

    try:
        asyncio.run(_record(url, events_path, config))
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


async def _record(url: str, events_path: Path, config: RecorderConfig) -> None:
    """ページが閉じられるまで記録し、成果物を出力する。"""
    from .mcp.session import RecordingSession

    async with RecordingSession(config) as session:
        recorder = await session.open(url)
        await recorder.start()
        await session.wait_closed()
        snapshot = await recorder.stop()

    if not snapshot:
        typer.echo("操作が記録されませんでした。")
        return

    from .core.events import save_events

    save_events(events_path, snapshot)
    typer.echo(f"記録完了: {events_path} ({len(snapshot)} 件)")
    _emit_artifacts(snapshot, events_path, config, snapshot[-1].url or url)


# ---------------------------------------------------------------------------
# script コマンド
# ---------------------------------------------------------------------------

@app.command()
def script(
    events_file: Path = typer.Argument(..., help="イベントログ JSON"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="出力先スクリプト（省略時は標準出力）",
    ),
    dialect: Optional[str] = typer.Option(
        None, "--dialect", "-d", help="スクリプト形式 (typescript / python)",
    ),
) -> None:
    """イベントログ JSON から Playwright スクリプトを生成する。"""
    from .core.events import read_events
    from .core.script_writer import ScriptWriter

    try:
        config = load_config(overrides={"script_dialect": dialect})
        events = read_events(events_file)
        writer = ScriptWriter(config.script_dialect, config.action_timeout_ms)
        if output is None:
            typer.echo(writer.synthesize(events, config.fallback_url), nl=False)
            return
        writer.write(events, output, config.fallback_url)
        typer.echo(f"スクリプトを生成しました: {output}")
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# report コマンド
# ---------------------------------------------------------------------------

@app.command()
def report(
    events_file: Path = typer.Argument(..., help="イベントログ JSON"),
    url: str = typer.Option(
        "", "--url", help="記録対象ページの URL（省略時は最後のイベントの URL）",
    ),
) -> None:
    """イベントログ JSON から HTML レポートを生成し、成果物ディレクトリに保存する。"""
    from .core.events import read_events

    try:
        config = load_config()
        events = read_events(events_file)
        if not events:
            typer.echo("記録されたイベントがありません。レポートは生成されませんでした。")
            return
        _emit_artifacts(events, None, config, url)
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# selector コマンド
# ---------------------------------------------------------------------------

@app.command()
def selector(
    html_file: Path = typer.Argument(..., help="保存済み HTML ファイル"),
    css: str = typer.Argument(..., help="対象要素を指す CSS セレクタ"),
    test_id_attribute: Optional[str] = typer.Option(
        None, "--test-id-attribute", help="最優先するテスト用属性名",
    ),
) -> None:
    """保存済み HTML 上の要素に対して、一意なセレクタを生成する。"""
    import asyncio

    from .core.dom import HtmlDocument
    from .core.selector import SelectorSynthesizer

    try:
        config = load_config(overrides={"test_id_attribute": test_id_attribute})
        document = HtmlDocument(html_file.read_text(encoding="utf-8"))
        element = document.element(css)
        synthesizer = SelectorSynthesizer(document, config.test_id_attribute)
        typer.echo(asyncio.run(synthesizer.synthesize(element)))
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# 内部ヘルパー
# ---------------------------------------------------------------------------

def _emit_artifacts(
    events,
    events_path: Optional[Path],
    config: RecorderConfig,
    url: str,
) -> None:
    """スクリプトとレポートを生成して出力する。

    Args:
        events: close 済みのイベント列
        events_path: イベントログの保存先（スクリプトはその隣に出力、None で省略）
        config: 実行時設定
        url: 記録対象ページの URL
    """
    from .core.artifacts import FileArtifactStore, build_request
    from .core.reporting import ReportAssembler
    from .core.script_writer import ScriptWriter

    writer = ScriptWriter(config.script_dialect, config.action_timeout_ms)
    if events_path is not None:
        script_path = events_path.with_name(events_path.stem + writer.suffix)
        writer.write(events, script_path, config.fallback_url)
        typer.echo(f"スクリプトを生成しました: {script_path}")

    script_text = writer.synthesize(events, config.fallback_url)
    document = ReportAssembler().assemble(events, script_text, url=url)
    if document is None:
        return

    moment = datetime.now(timezone.utc)
    request = build_request(document.content, url or events[-1].url, moment)
    path = FileArtifactStore(Path(config.output_dir)).save(request)
    typer.echo(f"HTML レポートを生成しました: {path}")
