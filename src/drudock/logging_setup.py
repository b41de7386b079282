"""logging の初期化。

- 詳細ログ: `~/.drudock/logs/drudock.log`（settings の `[logging] dir` で変更可）
- `--verbose`: 同じログを stderr にも出す（rich の RichHandler）
- 通常の画面表示は reporter 側。ログは `drudock` 名前空間だけを対象にする
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "drudock"
LOG_FILE = "drudock.log"

_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(*, log_dir: Path, level: str = "INFO", verbose: bool = False) -> Path:
    """`drudock` ロガーにハンドラを付けてログファイルのパスを返す。

    複数回呼ばれた場合は前回付けたハンドラを外してから付け直す。
    """
    log_path = log_dir / LOG_FILE
    log_dir.mkdir(parents=True, exist_ok=True)

    pkg_logger = logging.getLogger(LOGGER_NAME)
    for old in list(pkg_logger.handlers):
        if getattr(old, "_drudock", False):
            pkg_logger.removeHandler(old)
            old.close()

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=2_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handlers: list[logging.Handler] = [file_handler]

    if verbose:
        # 画面（stdout）はコマンド出力用。ログは stderr へ
        stderr_handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            markup=False,
            rich_tracebacks=False,
        )
        stderr_handler.setLevel(logging.DEBUG)
        handlers.append(stderr_handler)

    for handler in handlers:
        handler._drudock = True  # type: ignore[attr-defined]
        pkg_logger.addHandler(handler)

    pkg_logger.setLevel(logging.DEBUG if verbose else _level(level))
    return log_path


def _level(name: str) -> int:
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else logging.INFO
