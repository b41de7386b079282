"""settings: ツール全体の動作設定を定義する。

設定ファイル: `~/.drudock/drudock.toml`（環境変数 `DRUDOCK_SETTINGS` で上書き可）

```toml
[process]
timeout = 3600
idle_timeout = 600
tolerated_exit_codes = [129]

[docker]
compose = "docker-compose"
check_timeout = 2

[logging]
level = "INFO"
dir = "~/.drudock/logs"
```

ファイルが無ければすべて既定値。
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ModuleNotFoundError:  # Python < 3.11
    import tomli as tomllib  # type: ignore[no-redef]

from drudock.process import DEFAULT_IDLE_TIMEOUT, DEFAULT_TIMEOUT, TOLERATED_EXIT_CODES

SETTINGS_ENV = "DRUDOCK_SETTINGS"


def default_settings_path() -> Path:
    env = os.environ.get(SETTINGS_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".drudock" / "drudock.toml"


@dataclass
class ProcessSettings:
    timeout: float = DEFAULT_TIMEOUT
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    # docker-compose exec の TTY 既知問題 (exit 129)
    tolerated_exit_codes: list[int] = field(
        default_factory=lambda: sorted(TOLERATED_EXIT_CODES)
    )


@dataclass
class DockerSettings:
    compose: str = "docker-compose"
    check_timeout: float = 2.0


@dataclass
class LoggingSettings:
    level: str = "INFO"
    dir: str = "~/.drudock/logs"

    @property
    def log_dir(self) -> Path:
        return Path(self.dir).expanduser()


@dataclass
class Settings:
    process: ProcessSettings = field(default_factory=ProcessSettings)
    docker: DockerSettings = field(default_factory=DockerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


def load_settings(path: Path | None = None) -> Settings:
    if path is None:
        path = default_settings_path()
    if not path.exists():
        return Settings()

    raw = tomllib.loads(path.read_text(encoding="utf-8"))

    process = raw.get("process", {})
    docker = raw.get("docker", {})
    log = raw.get("logging", {})

    return Settings(
        process=ProcessSettings(
            timeout=float(process.get("timeout", DEFAULT_TIMEOUT)),
            idle_timeout=float(process.get("idle_timeout", DEFAULT_IDLE_TIMEOUT)),
            tolerated_exit_codes=[
                int(c)
                for c in process.get("tolerated_exit_codes", sorted(TOLERATED_EXIT_CODES))
            ],
        ),
        docker=DockerSettings(
            compose=str(docker.get("compose", "docker-compose")),
            check_timeout=float(docker.get("check_timeout", 2.0)),
        ),
        logging=LoggingSettings(
            level=str(log.get("level", "INFO")),
            dir=str(log.get("dir", "~/.drudock/logs")),
        ),
    )
