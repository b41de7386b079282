"""サブコマンドの組み立てテスト（実行はしない）。"""

from pathlib import Path

import pytest

import drudock.commands as c
from drudock.compose import ComposeProject


@pytest.fixture()
def project(app_dir: Path) -> ComposeProject:
    return ComposeProject(appname="demo", dist="Basic", root=app_dir)


def _tail(cmd, project: ComposeProject) -> list[str]:  # noqa: ANN001
    base = project.base().argv
    assert cmd.argv[: len(base)] == base
    return list(cmd.argv[len(base):])


def test_redis_info(project: ComposeProject) -> None:
    assert _tail(c.redis_info(project), project) == ["exec", "-T", "redis", "redis-cli", "info"]


def test_redis_monitor_is_interactive(project: ComposeProject) -> None:
    assert _tail(c.redis_monitor(project), project) == ["exec", "redis", "redis-cli", "monitor"]


def test_mysql_import_redirects_stdin(project: ComposeProject, tmp_path: Path) -> None:
    dump = tmp_path / "dump.sql"
    cmd = c.mysql_import(project, dump)
    assert cmd.stdin_file == dump
    assert _tail(cmd, project) == [
        "exec", "-T", "mysql", "mysql", "-u", "dev", "-pDEVPASSWORD", "dev_db",
    ]
    assert cmd.to_shell().endswith(f"< {dump}")


def test_mysql_export_redirects_stdout(project: ComposeProject, tmp_path: Path) -> None:
    dump = tmp_path / "out.sql"
    cmd = c.mysql_export(project, dump)
    assert cmd.stdout_file == dump
    assert "mysqldump" in cmd.argv
    assert cmd.to_shell().endswith(f"> {dump}")


@pytest.mark.parametrize(
    ("apptype", "expected"),
    [("D8", ["drush", "cr"]), ("D7", ["drush", "cc", "all"])],
)
def test_drush_cache_clear(project: ComposeProject, apptype: str, expected: list[str]) -> None:
    assert _tail(c.drush_cache_clear(project, apptype), project) == ["exec", "-T", "php", *expected]


def test_drush_modules(project: ComposeProject) -> None:
    assert _tail(c.drush_module_enable(project, ["views", "devel"]), project)[-4:] == [
        "en", "-y", "views", "devel",
    ]
    assert "pmu" in c.drush_module_disable(project, ["devel"], "D8").argv
    assert "dis" in c.drush_module_disable(project, ["devel"], "D7").argv


def test_drush_login_uses_host(project: ComposeProject) -> None:
    assert c.drush_login(project, "demo.localhost").argv[-1] == "--uri=demo.localhost"


def test_app_lifecycle(project: ComposeProject) -> None:
    assert _tail(c.app_start(project), project) == ["start"]
    assert _tail(c.app_build(project), project) == ["up", "-d", "--build"]
    assert _tail(c.app_destroy(project), project) == ["down", "-v"]
    assert _tail(c.app_exec(project, ["ls", "-la"]), project) == ["exec", "php", "ls", "-la"]
    assert _tail(c.app_bash(project, "nginx"), project) == ["exec", "nginx", "bash"]


def test_nginx(project: ComposeProject) -> None:
    assert _tail(c.nginx_reload(project), project) == ["exec", "-T", "nginx", "nginx", "-s", "reload"]
    assert _tail(c.nginx_monitor(project), project) == ["logs", "-f", "nginx"]
