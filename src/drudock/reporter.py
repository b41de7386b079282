"""コマンドの出力先（reporter）。

process runner / config gateway は Reporter プロトコルだけに依存する。
CLI では rich の Console を使う RichReporter を渡す。
"""

from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.markup import escape


class Reporter(Protocol):
    def info(self, text: str) -> None: ...

    def warning(self, text: str) -> None: ...

    def error(self, text: str) -> None: ...

    def section(self, title: str) -> None: ...


class RichReporter:
    """rich Console への出力。

    - quiet: info / section を出さない（warning / error は出す）
    - clean_output: section ラベルを出さない
    """

    def __init__(
        self,
        console: Console | None = None,
        *,
        quiet: bool = False,
        clean_output: bool = False,
    ) -> None:
        self.console = console or Console()
        self.err_console = Console(
            stderr=True,
            no_color=self.console.no_color,
            force_terminal=self.console.is_terminal,
        )
        self.quiet = quiet
        self.clean_output = clean_output

    def info(self, text: str) -> None:
        if self.quiet:
            return
        # process の出力は `\n` / `\r` 付きの断片で届く。rich は `\r` を落とすのでそのまま書く
        if text.endswith(("\n", "\r")):
            self.console.file.write(text)
            self.console.file.flush()
            return
        self.console.print(escape(text), highlight=False, emoji=False, soft_wrap=True)

    def warning(self, text: str) -> None:
        self.console.print(f"[WARNING] {escape(text)}", style="yellow", highlight=False)

    def error(self, text: str) -> None:
        self.err_console.print(f"[ERROR] {escape(text)}", style="bold red", highlight=False)

    def section(self, title: str) -> None:
        if self.quiet or self.clean_output:
            return
        self.console.print()
        self.console.print(escape(title), style="bold cyan", emoji=False)
        self.console.print("-" * len(title), style="cyan")
        self.console.print()
