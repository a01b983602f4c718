# コアモジュール
# DOM モデル、操作対象判定、セレクタ生成、イベントログ、スクリプト生成、レポート生成を提供

from .artifacts import ArtifactRequest, FileArtifactStore, build_request, suggest_filename
from .classifier import is_interactive
from .dom import Document, ElementInfo, HtmlDocument, NodeStep, PageDocument, SelectorSyntaxError
from .events import Event, EventKind, EventLog, EventLogClosedError, load_events, save_events
from .reporting import ReportAssembler, ReportDocument
from .script_writer import ScriptStep, ScriptWriter, build_steps
from .selector import SelectorSynthesizer, css_escape

__all__ = [
    "ArtifactRequest",
    "Document",
    "ElementInfo",
    "Event",
    "EventKind",
    "EventLog",
    "EventLogClosedError",
    "FileArtifactStore",
    "HtmlDocument",
    "NodeStep",
    "PageDocument",
    "ReportAssembler",
    "ReportDocument",
    "ScriptStep",
    "ScriptWriter",
    "SelectorSyntaxError",
    "SelectorSynthesizer",
    "build_request",
    "build_steps",
    "css_escape",
    "is_interactive",
    "load_events",
    "save_events",
    "suggest_filename",
]
