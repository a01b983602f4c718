# journey — ブラウザ操作を記録して Playwright テストと HTML レポートを生成するツール

__version__ = "0.1.0"
