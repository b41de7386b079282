"""drudock CLI エントリポイント。"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

import typer
from rich.console import Console

from drudock import __version__
from drudock import commands as cmds
from drudock.compose import ComposeProject, check_docker, docker_version
from drudock.config import ConfigGateway, ProjectConfig, missing_keys, system_appname
from drudock.errors import DrudockError, ProcessExecutionError
from drudock.logging_setup import setup_logging
from drudock.nginx import DEFAULT_HOST, write_nginx_host
from drudock.process import ProcessRunner
from drudock.reporter import RichReporter
from drudock.settings import Settings, load_settings
from drudock.shell import ShellCommand

APP_NAME = "Docker Drupal"
APP_HELP = "🐳 DruDock: Docker + Drupal ローカル開発環境の管理CLI"

# docker を使わないコマンド
NO_DOCKER_COMMANDS = {"app:about", "app:init", "app:update-config"}

UPDATE_DEFAULTS = {
    "apptype": "D8",
    "host": DEFAULT_HOST,
    "dist": "Basic",
    "src": "./app",
}

app = typer.Typer(add_completion=False, help=APP_HELP, no_args_is_help=True)
console = Console()
logger = logging.getLogger(__name__)


@dataclass
class AppState:
    reporter: RichReporter
    settings: Settings = field(default_factory=Settings)
    runner: ProcessRunner = field(default_factory=ProcessRunner)
    gateway: ConfigGateway = field(default_factory=ConfigGateway)
    interactive: bool = True

    def project(
        self, app_hint: str = "", *, check_containers: bool = True
    ) -> tuple[ProjectConfig, ComposeProject]:
        config = self.gateway.load(app_hint, self.reporter)
        project = ComposeProject.from_config(config, compose=self.settings.docker.compose)
        if check_containers:
            project.ensure_containers(self.runner)
        return config, project

    def run(self, command: ShellCommand, *, tty: bool = False) -> None:
        self.runner.run(command, self.reporter, tty=tty)


@contextmanager
def _fatal_errors(reporter: RichReporter) -> Iterator[None]:
    """DrudockError を表示して exit code 1 で終了する。"""
    try:
        yield
    except ProcessExecutionError as e:
        logger.error("%s", e)
        reporter.error(str(e))
        if e.output.strip():
            reporter.error(e.output.strip())
        raise typer.Exit(code=1) from e
    except DrudockError as e:
        logger.error("%s", e)
        reporter.error(str(e))
        raise typer.Exit(code=1) from e


def _state(ctx: typer.Context) -> AppState:
    return ctx.obj


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{APP_NAME} {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not output any message"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Increase the verbosity of messages"),
    clean_output: bool = typer.Option(
        False, "--clean-output", help="Clean output without section labels"
    ),
    ansi: bool | None = typer.Option(None, "--ansi/--no-ansi", help="Force / disable ANSI output"),
    no_interaction: bool = typer.Option(
        False, "--no-interaction", "-n", help="Do not ask any interactive question"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Display this application version",
    ),
) -> None:
    settings = load_settings()
    setup_logging(log_dir=settings.logging.log_dir, level=settings.logging.level, verbose=verbose)

    out = Console(no_color=ansi is False, force_terminal=True if ansi else None)
    reporter = RichReporter(out, quiet=quiet, clean_output=clean_output)
    runner = ProcessRunner(
        tolerated_exit_codes=frozenset(settings.process.tolerated_exit_codes),
        default_timeout=settings.process.timeout,
        default_idle_timeout=settings.process.idle_timeout,
    )
    ctx.obj = AppState(
        reporter=reporter,
        settings=settings,
        runner=runner,
        interactive=not no_interaction,
    )
    logger.debug("command=%s", ctx.invoked_subcommand)

    if ctx.invoked_subcommand not in NO_DOCKER_COMMANDS:
        with _fatal_errors(reporter):
            check_docker(runner, timeout=settings.docker.check_timeout)


# -- app ---------------------------------------------------------------------


@app.command("app:about")
def about(ctx: typer.Context) -> None:
    """Show information about this tool."""
    st = _state(ctx)
    st.reporter.section("ABOUT ::: DruDock")
    st.reporter.info(f"{APP_NAME} {__version__}")
    try:
        st.reporter.info(docker_version(st.runner, timeout=st.settings.docker.check_timeout))
    except ProcessExecutionError:
        st.reporter.warning("docker : Not Found")


@app.command("app:init")
def init(
    ctx: typer.Context,
    appname: str = typer.Option("", "--appname", help="APP name"),
    apptype: str = typer.Option("", "--apptype", help="D7 | D8"),
    host: str = typer.Option("", "--host", help="APP host name"),
    dist: str = typer.Option("", "--dist", help="Basic | Full | Feature | Stage | Prod"),
    src: str = typer.Option("", "--src", help="APP source path"),
) -> None:
    """Create a new APP directory with its .config.yml."""
    st = _state(ctx)
    st.reporter.section("APP ::: Init")

    values = {"appname": appname, "apptype": apptype, "host": host, "dist": dist, "src": src}
    for key, value in values.items():
        if value:
            continue
        default = UPDATE_DEFAULTS.get(key, "")
        if st.interactive:
            values[key] = typer.prompt(key, default=default or None)
        elif default:
            values[key] = default
        else:
            st.reporter.error(f"--{key} is required with --no-interaction")
            raise typer.Exit(code=1)

    with _fatal_errors(st.reporter):
        config = st.gateway.create(Path(system_appname(values["appname"])), values)
    st.reporter.info(f"Created {config.path}")


@app.command("app:update-config")
def update_config(
    ctx: typer.Context,
    appname: str = typer.Argument("", help="APP directory (when not inside it)"),
) -> None:
    """Fill in missing APP config and update the config version."""
    st = _state(ctx)
    st.reporter.section("APP ::: Update config")

    with _fatal_errors(st.reporter):
        config = st.gateway.load(appname, st.reporter, skip_checks=True)
        for key in missing_keys(config.data):
            if key == "drudock.version":
                continue
            default = UPDATE_DEFAULTS.get(key) or config.path.resolve().parent.name
            if st.interactive:
                config[key] = typer.prompt(key, default=default)
            else:
                config[key] = default
            st.reporter.info(f"{key}: {config[key]}")
        config.set_schema_version(__version__)
        st.gateway.save(config)
    st.reporter.info(f"Updated {config.path}")


@app.command("app:start")
def start(ctx: typer.Context) -> None:
    """Start APP containers."""
    st = _state(ctx)
    st.reporter.section("APP ::: Starting containers")
    with _fatal_errors(st.reporter):
        _, project = st.project(check_containers=False)
        st.run(cmds.app_start(project))


@app.command("app:stop")
def stop(ctx: typer.Context) -> None:
    """Stop APP containers."""
    st = _state(ctx)
    st.reporter.section("APP ::: Stopping containers")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.app_stop(project))


@app.command("app:restart")
def restart(ctx: typer.Context) -> None:
    """Restart APP containers."""
    st = _state(ctx)
    st.reporter.section("APP ::: Restarting containers")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.app_restart(project))


@app.command("app:build")
def build(ctx: typer.Context) -> None:
    """Build and start APP containers."""
    st = _state(ctx)
    st.reporter.section("APP ::: Building containers")
    with _fatal_errors(st.reporter):
        config, project = st.project(check_containers=False)
        write_nginx_host(config, project)
        st.run(cmds.app_build(project))


@app.command("app:destroy")
def destroy(ctx: typer.Context) -> None:
    """Remove APP containers and volumes."""
    st = _state(ctx)
    st.reporter.section("APP ::: Destroying containers")
    with _fatal_errors(st.reporter):
        _, project = st.project()
    # 設定とコンテナを確認してから聞く
    if st.interactive:
        typer.confirm("All APP containers and volumes will be removed. Continue?", abort=True)
    with _fatal_errors(st.reporter):
        st.run(cmds.app_destroy(project))


@app.command("app:status")
def status(ctx: typer.Context) -> None:
    """Show APP container status."""
    st = _state(ctx)
    st.reporter.section("APP ::: Status")
    with _fatal_errors(st.reporter):
        config, project = st.project()
        st.run(cmds.app_status(project))
        port = project.container_port(st.runner, cmds.NGINX_SERVICE, "80")
    if port:
        st.reporter.info(f"http://{config.host or DEFAULT_HOST}:{port}")


@app.command(
    "app:exec",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def exec_(
    ctx: typer.Context,
    args: list[str] = typer.Argument(..., help="Command to run in the php container"),
) -> None:
    """Run a command in the php container."""
    st = _state(ctx)
    st.reporter.section("APP ::: Exec")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.app_exec(project, [*args, *ctx.args]), tty=True)


@app.command("app:bash")
def bash(
    ctx: typer.Context,
    service: str = typer.Argument(cmds.PHP_SERVICE, help="Service container"),
) -> None:
    """Open a bash shell in a service container."""
    st = _state(ctx)
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.app_bash(project, service), tty=True)


# -- mysql -------------------------------------------------------------------


@app.command("mysql:import")
def mysql_import(
    ctx: typer.Context,
    dump: Path = typer.Argument(..., exists=True, dir_okay=False, help="SQL dump to import"),
) -> None:
    """Import a SQL dump into the APP database."""
    st = _state(ctx)
    st.reporter.section("MYSQL ::: Import")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.mysql_import(project, dump.resolve()))
    st.reporter.info(f"Imported {dump}")


@app.command("mysql:export")
def mysql_export(
    ctx: typer.Context,
    dump: Path = typer.Argument(..., dir_okay=False, help="Output SQL file"),
) -> None:
    """Export the APP database to a SQL file."""
    st = _state(ctx)
    st.reporter.section("MYSQL ::: Export")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.mysql_export(project, dump.resolve()))
    st.reporter.info(f"Exported {dump}")


@app.command("mysql:monitor")
def mysql_monitor(ctx: typer.Context) -> None:
    """Follow mysql container logs."""
    st = _state(ctx)
    st.reporter.section("MYSQL ::: Monitor")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.mysql_monitor(project), tty=True)


# -- redis -------------------------------------------------------------------


@app.command("redis:info")
def redis_info(ctx: typer.Context) -> None:
    """Get Redis running config information."""
    st = _state(ctx)
    st.reporter.section("REDIS ::: Info")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.redis_info(project))


@app.command("redis:ping")
def redis_ping(ctx: typer.Context) -> None:
    """Ping the Redis server."""
    st = _state(ctx)
    st.reporter.section("REDIS ::: Ping")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.redis_ping(project))


@app.command("redis:flush")
def redis_flush(ctx: typer.Context) -> None:
    """Flush all Redis keys."""
    st = _state(ctx)
    st.reporter.section("REDIS ::: Flush")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.redis_flush(project))


@app.command("redis:monitor")
def redis_monitor(ctx: typer.Context) -> None:
    """Monitor Redis commands."""
    st = _state(ctx)
    st.reporter.section("REDIS ::: Monitor")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.redis_monitor(project), tty=True)


# -- nginx -------------------------------------------------------------------


@app.command("nginx:reload")
def nginx_reload(ctx: typer.Context) -> None:
    """Reload nginx configuration."""
    st = _state(ctx)
    st.reporter.section("NGINX ::: Reload")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.nginx_reload(project))


@app.command("nginx:monitor")
def nginx_monitor(ctx: typer.Context) -> None:
    """Follow nginx container logs."""
    st = _state(ctx)
    st.reporter.section("NGINX ::: Monitor")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.nginx_monitor(project), tty=True)


@app.command("nginx:flush-pagespeed")
def nginx_flush_pagespeed(ctx: typer.Context) -> None:
    """Flush the nginx pagespeed cache."""
    st = _state(ctx)
    st.reporter.section("NGINX ::: Flush pagespeed")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.nginx_flush_pagespeed(project))
        st.run(cmds.nginx_reload(project))


@app.command("nginx:sethost")
def nginx_sethost(ctx: typer.Context) -> None:
    """Write the nginx host config from .config.yml and reload nginx."""
    st = _state(ctx)
    st.reporter.section("NGINX ::: Set host")
    with _fatal_errors(st.reporter):
        config, project = st.project()
        for path in write_nginx_host(config, project):
            st.reporter.info(f"Wrote {path}")
        st.run(cmds.nginx_reload(project))


@app.command("nginx:proxy-start")
def nginx_proxy_start(ctx: typer.Context) -> None:
    """Start the shared nginx reverse proxy (Prod)."""
    st = _state(ctx)
    st.reporter.section("NGINX ::: Proxy start")
    with _fatal_errors(st.reporter):
        _, project = st.project(check_containers=False)
        st.run(cmds.nginx_proxy_start(project))


@app.command("nginx:proxy-stop")
def nginx_proxy_stop(ctx: typer.Context) -> None:
    """Stop the shared nginx reverse proxy (Prod)."""
    st = _state(ctx)
    st.reporter.section("NGINX ::: Proxy stop")
    with _fatal_errors(st.reporter):
        _, project = st.project(check_containers=False)
        st.run(cmds.nginx_proxy_stop(project))


# -- drush -------------------------------------------------------------------


@app.command("drush:cc")
def drush_cc(ctx: typer.Context) -> None:
    """Clear Drupal caches."""
    st = _state(ctx)
    st.reporter.section("DRUSH ::: Clear cache")
    with _fatal_errors(st.reporter):
        config, project = st.project()
        st.run(cmds.drush_cache_clear(project, config.apptype))


@app.command("drush:uli")
def drush_uli(ctx: typer.Context) -> None:
    """Generate a one-time admin login link."""
    st = _state(ctx)
    st.reporter.section("DRUSH ::: Login")
    with _fatal_errors(st.reporter):
        config, project = st.project()
        st.run(cmds.drush_login(project, config.host or DEFAULT_HOST))


@app.command("drush:en")
def drush_en(
    ctx: typer.Context,
    modules: list[str] = typer.Argument(..., help="Modules to enable"),
) -> None:
    """Enable Drupal modules."""
    st = _state(ctx)
    st.reporter.section("DRUSH ::: Module enable")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.drush_module_enable(project, modules))


@app.command("drush:dis")
def drush_dis(
    ctx: typer.Context,
    modules: list[str] = typer.Argument(..., help="Modules to disable"),
) -> None:
    """Disable (D7) or uninstall (D8) Drupal modules."""
    st = _state(ctx)
    st.reporter.section("DRUSH ::: Module disable")
    with _fatal_errors(st.reporter):
        config, project = st.project()
        st.run(cmds.drush_module_disable(project, modules, config.apptype))


@app.command("drush:updb")
def drush_updb(ctx: typer.Context) -> None:
    """Run pending database updates."""
    st = _state(ctx)
    st.reporter.section("DRUSH ::: Update DB")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.drush_updb(project))


@app.command("drush:cex")
def drush_cex(ctx: typer.Context) -> None:
    """Export Drupal configuration."""
    st = _state(ctx)
    st.reporter.section("DRUSH ::: Config export")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.drush_config_export(project))


@app.command("drush:cim")
def drush_cim(ctx: typer.Context) -> None:
    """Import Drupal configuration."""
    st = _state(ctx)
    st.reporter.section("DRUSH ::: Config import")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.drush_config_import(project))


@app.command("drush:rr")
def drush_rr(ctx: typer.Context) -> None:
    """Rebuild the Drupal 7 registry."""
    st = _state(ctx)
    st.reporter.section("DRUSH ::: Registry rebuild")
    with _fatal_errors(st.reporter):
        _, project = st.project()
        st.run(cmds.drush_registry_rebuild(project))
