"""各サブコマンドが実行する ShellCommand を組み立てる。

どれも ComposeProject から `docker-compose -f ... <action>` を作るだけ。
実行は CLI 側で ProcessRunner に渡す。
"""

from __future__ import annotations

from pathlib import Path

from drudock.compose import ComposeProject
from drudock.shell import ShellCommand

DEV_MYSQL_USER = "dev"
DEV_MYSQL_PASS = "DEVPASSWORD"
DEV_MYSQL_DB = "dev_db"

PHP_SERVICE = "php"
MYSQL_SERVICE = "mysql"
REDIS_SERVICE = "redis"
NGINX_SERVICE = "nginx"

PAGESPEED_CACHE = "/var/ngx_pagespeed_cache"


def _exec(project: ComposeProject, service: str, *args: str, tty: bool = False) -> ShellCommand:
    # tty 無しの exec は -T（疑似端末を割り当てない）
    flags = [] if tty else ["-T"]
    return project.base().extend("exec", *flags, service, *args)


# -- app ---------------------------------------------------------------------


def app_start(project: ComposeProject) -> ShellCommand:
    return project.base().extend("start")


def app_stop(project: ComposeProject) -> ShellCommand:
    return project.base().extend("stop")


def app_restart(project: ComposeProject) -> ShellCommand:
    return project.base().extend("restart")


def app_build(project: ComposeProject) -> ShellCommand:
    return project.base().extend("up", "-d", "--build")


def app_destroy(project: ComposeProject) -> ShellCommand:
    return project.base().extend("down", "-v")


def app_status(project: ComposeProject) -> ShellCommand:
    return project.base().extend("ps")


def app_exec(project: ComposeProject, args: list[str]) -> ShellCommand:
    return _exec(project, PHP_SERVICE, *args, tty=True)


def app_bash(project: ComposeProject, service: str = PHP_SERVICE) -> ShellCommand:
    return _exec(project, service, "bash", tty=True)


# -- mysql -------------------------------------------------------------------


def _mysql_auth() -> list[str]:
    return ["-u", DEV_MYSQL_USER, f"-p{DEV_MYSQL_PASS}"]


def mysql_import(project: ComposeProject, dump: Path) -> ShellCommand:
    cmd = _exec(project, MYSQL_SERVICE, "mysql", *_mysql_auth(), DEV_MYSQL_DB)
    return ShellCommand(cmd.argv, stdin_file=dump)


def mysql_export(project: ComposeProject, dump: Path) -> ShellCommand:
    cmd = _exec(
        project, MYSQL_SERVICE, "mysqldump", *_mysql_auth(), "--single-transaction", DEV_MYSQL_DB
    )
    return ShellCommand(cmd.argv, stdout_file=dump)


def mysql_monitor(project: ComposeProject) -> ShellCommand:
    return project.base().extend("logs", "-f", MYSQL_SERVICE)


# -- redis -------------------------------------------------------------------


def redis_cli(project: ComposeProject, *args: str, tty: bool = False) -> ShellCommand:
    return _exec(project, REDIS_SERVICE, "redis-cli", *args, tty=tty)


def redis_info(project: ComposeProject) -> ShellCommand:
    return redis_cli(project, "info")


def redis_ping(project: ComposeProject) -> ShellCommand:
    return redis_cli(project, "ping")


def redis_flush(project: ComposeProject) -> ShellCommand:
    return redis_cli(project, "flushall")


def redis_monitor(project: ComposeProject) -> ShellCommand:
    return redis_cli(project, "monitor", tty=True)


# -- nginx -------------------------------------------------------------------


def nginx_reload(project: ComposeProject) -> ShellCommand:
    return _exec(project, NGINX_SERVICE, "nginx", "-s", "reload")


def nginx_monitor(project: ComposeProject) -> ShellCommand:
    return project.base().extend("logs", "-f", NGINX_SERVICE)


def nginx_flush_pagespeed(project: ComposeProject) -> ShellCommand:
    return _exec(project, NGINX_SERVICE, "sh", "-c", f"rm -rf {PAGESPEED_CACHE}/*")


def nginx_proxy_start(project: ComposeProject) -> ShellCommand:
    return project.proxy_base().extend("up", "-d")


def nginx_proxy_stop(project: ComposeProject) -> ShellCommand:
    return project.proxy_base().extend("stop")


# -- drush -------------------------------------------------------------------


def drush(project: ComposeProject, *args: str, tty: bool = False) -> ShellCommand:
    return _exec(project, PHP_SERVICE, "drush", *args, tty=tty)


def drush_cache_clear(project: ComposeProject, apptype: str) -> ShellCommand:
    # D8 以降は cache-rebuild
    if apptype == "D8":
        return drush(project, "cr")
    return drush(project, "cc", "all")


def drush_login(project: ComposeProject, host: str) -> ShellCommand:
    return drush(project, "uli", f"--uri={host}")


def drush_module_enable(project: ComposeProject, modules: list[str]) -> ShellCommand:
    return drush(project, "en", "-y", *modules)


def drush_module_disable(project: ComposeProject, modules: list[str], apptype: str) -> ShellCommand:
    # D8 には dis が無い
    action = "pmu" if apptype == "D8" else "dis"
    return drush(project, action, "-y", *modules)


def drush_updb(project: ComposeProject) -> ShellCommand:
    return drush(project, "updb", "-y")


def drush_config_export(project: ComposeProject) -> ShellCommand:
    return drush(project, "cex", "-y")


def drush_config_import(project: ComposeProject) -> ShellCommand:
    return drush(project, "cim", "-y")


def drush_registry_rebuild(project: ComposeProject) -> ShellCommand:
    return drush(project, "rr")
