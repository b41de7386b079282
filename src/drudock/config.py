"""アプリ設定ファイル（.config.yml）のロードと保存。

アプリのディレクトリに `.config.yml` を置く。

```yaml
appname: demo
apptype: D8
host: demo.localhost
dist: Basic
src: ./src
drudock:
  version: "1.4"
```

- カレントディレクトリの `.config.yml` → `<appname>/.config.yml` の順に探す
- 必須キーが無ければ不足キーを1つずつ報告して ConfigIncompleteError
  （`app:update-config` だけは検証を skip する）
- ツールと設定のメジャーバージョン（先頭1文字）が違えば警告のみ
- 保存は常に全体の上書き（部分マージはしない）
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from drudock import __version__
from drudock.errors import (
    ConfigIncompleteError,
    ConfigNotFoundError,
    ConfigParseError,
    ConfigWriteError,
)
from drudock.reporter import Reporter

logger = logging.getLogger(__name__)

CONFIG_PATH = ".config.yml"
REQUIRED_KEYS = ("appname", "apptype", "host", "dist", "src", "drudock.version")


def system_appname(appname: str) -> str:
    return appname.replace(" ", "").lower()


def _lookup(data: dict[str, Any], dotted: str) -> Any:
    cur: Any = data
    for part in dotted.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return None
        cur = cur[part]
    return cur


def _has(data: dict[str, Any], dotted: str) -> bool:
    cur: Any = data
    for part in dotted.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return False
        cur = cur[part]
    return True


def missing_keys(data: dict[str, Any]) -> list[str]:
    """不足している必須キーを REQUIRED_KEYS の順で返す。

    キーの有無だけを見る。`host:` のように値が空（null）でも不足扱いにしない。
    """
    return [k for k in REQUIRED_KEYS if not _has(data, k)]


@dataclass
class ProjectConfig:
    data: dict[str, Any] = field(default_factory=dict)
    path: Path = Path(CONFIG_PATH)

    def get(self, key: str, default: Any = None) -> Any:
        value = _lookup(self.data, key)
        return default if value is None else value

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.data[key] = value

    @property
    def appname(self) -> str:
        return str(self.data.get("appname") or "")

    @property
    def system_appname(self) -> str:
        return system_appname(self.appname)

    @property
    def apptype(self) -> str:
        return str(self.data.get("apptype") or "")

    @property
    def host(self) -> str:
        return str(self.data.get("host") or "")

    @property
    def dist(self) -> str:
        return str(self.data.get("dist") or "")

    @property
    def schema_version(self) -> str:
        return str(self.get("drudock.version", ""))

    def set_schema_version(self, version: str) -> None:
        tool = self.data.get("drudock")
        if not isinstance(tool, dict):
            tool = {}
            self.data["drudock"] = tool
        tool["version"] = version


@dataclass
class ConfigGateway:
    root: Path = Path(".")
    tool_version: str = __version__

    def locate(self, app_hint: str = "") -> Path:
        candidates = [self.root / CONFIG_PATH]
        if app_hint:
            candidates.append(self.root / app_hint / CONFIG_PATH)
        for p in candidates:
            if p.is_file():
                return p
        raise ConfigNotFoundError([str(p) for p in candidates])

    def load(
        self,
        app_hint: str = "",
        reporter: Reporter | None = None,
        *,
        skip_checks: bool = False,
    ) -> ProjectConfig:
        path = self.locate(app_hint)
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            raise ConfigParseError(str(path), str(e)) from e
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            # マッピング以外は空の設定として扱い、必須キー検証で全キーを報告する
            logger.warning("config is not a mapping: %s", path)
            raw = {}
        config = ProjectConfig(data=raw, path=path)
        logger.debug("loaded config: %s", path)

        if not skip_checks:
            missing = missing_keys(raw)
            if missing:
                if reporter is not None:
                    reporter.info(
                        "Your app is missing the following config, "
                        "please run [drudock app:update-config] : "
                    )
                    for key in missing:
                        reporter.warning(key)
                raise ConfigIncompleteError(missing)

        schema = config.schema_version
        if schema and schema[:1] != self.tool_version[:1]:
            logger.info("version mismatch: tool=%s app=%s", self.tool_version, schema)
            if reporter is not None:
                reporter.warning(
                    "Your installed DruDock version is different to the app "
                    "setup version and may not work"
                )
        return config

    def save(self, config: ProjectConfig) -> None:
        text = yaml.safe_dump(config.data, default_flow_style=False, sort_keys=False)
        try:
            config.path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise ConfigWriteError(f"Cannot write APP config {config.path}: {e}") from e
        logger.debug("saved config: %s", config.path)

    def create(self, directory: Path, data: dict[str, Any]) -> ProjectConfig:
        """`app:init` 用。ディレクトリごと作成して保存する。"""
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigWriteError(f"Cannot create APP directory {directory}: {e}") from e
        config = ProjectConfig(data=dict(data), path=directory / CONFIG_PATH)
        if not config.schema_version:
            config.set_schema_version(self.tool_version)
        self.save(config)
        return config
