"""RichReporter のテスト。"""

from __future__ import annotations

import io

from rich.console import Console

from drudock.reporter import RichReporter


def _reporter(**kwargs) -> tuple[RichReporter, io.StringIO]:
    buf = io.StringIO()
    return RichReporter(Console(file=buf, width=80), **kwargs), buf


def test_process_output_is_written_verbatim() -> None:
    reporter, buf = _reporter()
    for chunk in ["10%\r", "100%\n", "[not markup]\n"]:
        reporter.info(chunk)
    assert buf.getvalue() == "10%\r100%\n[not markup]\n"


def test_message_gets_newline() -> None:
    reporter, buf = _reporter()
    reporter.info("Updated .config.yml")
    assert buf.getvalue() == "Updated .config.yml\n"


def test_quiet_and_clean_output() -> None:
    reporter, buf = _reporter(quiet=True)
    reporter.info("hidden\n")
    reporter.section("Title")
    reporter.warning("shown")
    assert buf.getvalue() == "[WARNING] shown\n"

    reporter, buf = _reporter(clean_output=True)
    reporter.section("Title")
    reporter.info("line\n")
    assert buf.getvalue() == "line\n"
