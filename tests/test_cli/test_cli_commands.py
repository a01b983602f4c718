"""
CLI テスト — typer.testing.CliRunner を使用した CLI コマンドのテスト

実際のブラウザ起動は行わず、記録処理はモックで代替する。
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from journey.cli import app

runner = CliRunner()


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """環境変数の影響を受けない作業ディレクトリ。"""
    for key in list(os.environ):
        if key.startswith("JOURNEY_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def events_file(project: Path, sample_events) -> Path:
    path = project / "events.json"
    path.write_text(
        json.dumps([e.to_dict() for e in sample_events], ensure_ascii=False),
        encoding="utf-8",
    )
    return path


# ===========================================================================
# 1. init コマンド
# ===========================================================================

class TestInitCommand:
    """init コマンドのテスト。"""

    def test_creates_directories_and_config(self, project: Path):
        result = runner.invoke(app, ["init", str(project)])
        assert result.exit_code == 0
        assert (project / "artifacts").is_dir()
        assert (project / "recordings").is_dir()
        assert "script_dialect: typescript" in (project / "journey.yaml").read_text(encoding="utf-8")

    def test_keeps_existing_config(self, project: Path):
        (project / "journey.yaml").write_text("headed: false\n", encoding="utf-8")
        result = runner.invoke(app, ["init", str(project)])
        assert result.exit_code == 0
        assert (project / "journey.yaml").read_text(encoding="utf-8") == "headed: false\n"


# ===========================================================================
# 2. script コマンド
# ===========================================================================

class TestScriptCommand:
    """script コマンドのテスト。"""

    def test_prints_typescript(self, events_file: Path):
        result = runner.invoke(app, ["script", str(events_file)])
        assert result.exit_code == 0
        assert "import { test, expect } from '@playwright/test';" in result.output
        assert "await page.fill('#q', 'hello');" in result.output
        assert "await page.setChecked('#agree', true);" in result.output

    def test_writes_python(self, events_file: Path, project: Path):
        out = project / "journey.py"
        result = runner.invoke(app, ["script", str(events_file), "-d", "python", "-o", str(out)])
        assert result.exit_code == 0
        assert "async_playwright" in out.read_text(encoding="utf-8")

    def test_uses_project_dialect(self, events_file: Path, project: Path):
        (project / "journey.yaml").write_text("script_dialect: python\n", encoding="utf-8")
        result = runner.invoke(app, ["script", str(events_file)])
        assert result.exit_code == 0
        assert "asyncio.run(run())" in result.output

    def test_invalid_dialect(self, events_file: Path):
        result = runner.invoke(app, ["script", str(events_file), "-d", "ruby"])
        assert result.exit_code == 1
        assert "エラー" in result.output

    def test_missing_file(self, project: Path):
        result = runner.invoke(app, ["script", str(project / "none.json")])
        assert result.exit_code == 1


# ===========================================================================
# 3. report コマンド
# ===========================================================================

class TestReportCommand:
    """report コマンドのテスト。"""

    def test_saves_report(self, events_file: Path, project: Path):
        result = runner.invoke(app, ["report", str(events_file)])
        assert result.exit_code == 0
        (saved,) = (project / "artifacts" / "playwright_tests").iterdir()
        assert saved.name.endswith("_example.com_report.html")
        assert "Test Case Report" in saved.read_text(encoding="utf-8")

    def test_url_option_sets_host(self, events_file: Path, project: Path):
        result = runner.invoke(app, ["report", str(events_file), "--url", "https://shop.test/"])
        assert result.exit_code == 0
        (saved,) = (project / "artifacts" / "playwright_tests").iterdir()
        assert saved.name.endswith("_shop.test_report.html")

    def test_empty_log(self, project: Path):
        path = project / "empty.json"
        path.write_text("[]", encoding="utf-8")
        result = runner.invoke(app, ["report", str(path)])
        assert result.exit_code == 0
        assert not (project / "artifacts").exists()

    def test_invalid_json(self, project: Path):
        path = project / "broken.json"
        path.write_text("{", encoding="utf-8")
        result = runner.invoke(app, ["report", str(path)])
        assert result.exit_code == 1
        assert "エラー" in result.output


# ===========================================================================
# 4. selector コマンド
# ===========================================================================

class TestSelectorCommand:
    """selector コマンドのテスト。"""

    @pytest.fixture
    def page_file(self, project: Path) -> Path:
        path = project / "page.html"
        path.write_text(
            "<html><body><div>"
            "<button data-qa='save'>Save</button>"
            "<button>Cancel</button>"
            "</div></body></html>",
            encoding="utf-8",
        )
        return path

    def test_button_text(self, page_file: Path):
        result = runner.invoke(app, ["selector", str(page_file), "button:nth-of-type(2)"])
        assert result.exit_code == 0
        assert result.output.strip() == 'button:has-text("Cancel")'

    def test_custom_test_id_attribute(self, page_file: Path):
        result = runner.invoke(
            app, ["selector", str(page_file), "button", "--test-id-attribute", "data-qa"],
        )
        assert result.exit_code == 0
        assert result.output.strip() == '[data-qa="save"]'

    def test_element_not_found(self, page_file: Path):
        result = runner.invoke(app, ["selector", str(page_file), "#missing"])
        assert result.exit_code == 1
        assert "エラー" in result.output


# ===========================================================================
# 5. record コマンド
# ===========================================================================

class TestRecordCommand:
    """record コマンドのテスト（ブラウザ起動部分はモック）。"""

    def test_passes_config_to_recording(self, project: Path):
        with patch("journey.cli._record", new_callable=AsyncMock) as mock_record:
            result = runner.invoke(
                app, ["record", "https://example.com/", "--headless", "-d", "python"],
            )
        assert result.exit_code == 0
        url, events_path, config = mock_record.await_args.args
        assert url == "https://example.com/"
        assert events_path == Path("recordings") / "events.json"
        assert config.headed is False
        assert config.script_dialect == "python"

    def test_prompts_for_url(self, project: Path):
        with patch("journey.cli._record", new_callable=AsyncMock) as mock_record:
            result = runner.invoke(app, ["record"], input="https://example.org/\n")
        assert result.exit_code == 0
        assert mock_record.await_args.args[0] == "https://example.org/"

    def test_recording_failure(self, project: Path):
        with patch("journey.cli._record", new_callable=AsyncMock) as mock_record:
            mock_record.side_effect = RuntimeError("browser crashed")
            result = runner.invoke(app, ["record", "https://example.com/"])
        assert result.exit_code == 1
        assert "browser crashed" in result.output

    def test_emits_script_and_report(self, project: Path, sample_events):
        """記録後にイベントログ・スクリプト・レポートが出力されること。"""
        from journey.cli import _emit_artifacts
        from journey.config import RecorderConfig

        events_path = project / "recordings" / "events.json"
        _emit_artifacts(tuple(sample_events), events_path, RecorderConfig(), "https://example.com/")

        assert (project / "recordings" / "events.spec.ts").exists()
        (saved,) = (project / "artifacts" / "playwright_tests").iterdir()
        assert "_example.com_report.html" in saved.name
