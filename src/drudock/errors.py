"""drudock の例外。

ライブラリ側（config / process / compose）は例外を投げるだけにし、
ユーザーへの表示と終了コードの決定は CLI 層（drudock.cli）が行う。
"""

from __future__ import annotations


class DrudockError(Exception):
    """drudock が扱う致命的エラーの基底クラス。"""


class ConfigNotFoundError(DrudockError):
    def __init__(self, searched: list[str]) -> None:
        self.searched = searched
        super().__init__(
            "You're not currently in an APP directory. APP .config.yml not found."
        )


class ConfigIncompleteError(DrudockError):
    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            "APP config is missing required keys: "
            + ", ".join(missing)
            + ". Please run [drudock app:update-config]."
        )


class ConfigParseError(DrudockError):
    """.config.yml が読めない（YAML 構文エラー、UTF-8 でない等）。"""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        super().__init__(f"Cannot parse APP config {path}: {detail}")


class ConfigWriteError(DrudockError):
    pass


class EnvironmentUnavailableError(DrudockError):
    pass


class ProcessExecutionError(DrudockError):
    """外部コマンドの失敗（許容されない終了コード、またはタイムアウト）。"""

    def __init__(
        self,
        command: str,
        exit_code: int | None,
        output: str = "",
        reason: str = "exit",
    ) -> None:
        self.command = command
        self.exit_code = exit_code
        self.output = output
        self.reason = reason  # exit | timeout | idle timeout
        if reason == "exit":
            msg = f'The command "{command}" failed. Exit Code: {exit_code}'
        else:
            msg = f'The command "{command}" was killed ({reason}).'
        super().__init__(msg)
