"""docker / docker-compose まわり。

アプリごとの docker 一式は `./docker_<system_appname>/` に置かれる。

- ローカル系 (Basic / Full / Feature): `docker-compose.yml`
- Prod / Stage: `docker-compose-data.yml` + `--project-name=<system_appname>`
- 共有リバースプロキシ (Prod のみ): `docker-compose-nginx-proxy.yml` + `--project-name=proxy`
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from drudock.config import ProjectConfig
from drudock.errors import EnvironmentUnavailableError, ProcessExecutionError
from drudock.process import ProcessRunner
from drudock.shell import ShellCommand

logger = logging.getLogger(__name__)

PATH_PREFIX = "docker_"
COMPOSE_FILE = "docker-compose.yml"
COMPOSE_DATA_FILE = "docker-compose-data.yml"
COMPOSE_PROXY_FILE = "docker-compose-nginx-proxy.yml"
REMOTE_DISTS = ("Prod", "Stage")


def check_docker(runner: ProcessRunner, *, timeout: float = 2.0) -> None:
    """docker デーモンに接続できるか確認する。"""
    try:
        runner.run(ShellCommand(["docker", "info"]), None, timeout=timeout, idle_timeout=0)
    except ProcessExecutionError as e:
        logger.debug("docker info failed: %s", e)
        raise EnvironmentUnavailableError(
            "Cannot connect to the Docker daemon. Is the docker daemon running?"
        ) from e


def docker_version(runner: ProcessRunner, *, timeout: float = 2.0) -> str:
    outcome = runner.run(
        ShellCommand(["docker", "--version"]), None, timeout=timeout, idle_timeout=0
    )
    return outcome.output.strip()


@dataclass
class ComposeProject:
    """1アプリ分の compose 設定。"""

    appname: str
    dist: str
    root: Path = Path(".")
    compose: str = "docker-compose"

    @classmethod
    def from_config(
        cls, config: ProjectConfig, *, compose: str = "docker-compose"
    ) -> ComposeProject:
        return cls(
            appname=config.system_appname,
            dist=config.dist,
            root=config.path.parent,
            compose=compose,
        )

    @property
    def docker_dir(self) -> Path:
        return self.root / f"{PATH_PREFIX}{self.appname}"

    @property
    def is_remote(self) -> bool:
        return self.dist in REMOTE_DISTS

    @property
    def compose_file(self) -> Path:
        name = COMPOSE_DATA_FILE if self.is_remote else COMPOSE_FILE
        return self.docker_dir / name

    def container_name(self, service: str) -> str:
        return f"{self.appname}_{service}_1"

    def base(self) -> ShellCommand:
        """`docker-compose -f <file> [--project-name=...]` を返す。"""
        if not self.compose_file.is_file():
            raise EnvironmentUnavailableError(f"{self.compose_file.name} : Not Found")
        argv = [*self.compose.split(), "-f", str(self.compose_file)]
        if self.is_remote:
            argv.append(f"--project-name={self.appname}")
        return ShellCommand(argv)

    def proxy_base(self) -> ShellCommand:
        proxy_file = self.docker_dir / COMPOSE_PROXY_FILE
        if self.dist != "Prod" or not proxy_file.is_file():
            raise EnvironmentUnavailableError(f"{COMPOSE_PROXY_FILE} : Not Found")
        return ShellCommand([*self.compose.split(), "-f", str(proxy_file), "--project-name=proxy"])

    def ensure_containers(self, runner: ProcessRunner, *, timeout: float = 10.0) -> None:
        """アプリのコンテナが作成済みか確認する。"""
        outcome = runner.run(self.base().extend("ps", "-q"), None, timeout=timeout, idle_timeout=0)
        if not outcome.output.strip():
            raise EnvironmentUnavailableError(
                f"APP {self.appname} has no containers. Try [drudock app:build]."
            )

    def container_port(
        self, runner: ProcessRunner, service: str, port: str, *, timeout: float = 5.0
    ) -> str:
        """公開ポートを返す（`docker port` の先頭行の末尾）。"""
        outcome = runner.run(
            ShellCommand(["docker", "port", self.container_name(service), port]),
            None,
            timeout=timeout,
            idle_timeout=0,
        )
        first = outcome.output.strip().splitlines()[:1]
        if not first:
            return ""
        return first[0].rsplit(":", 1)[-1]
