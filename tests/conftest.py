from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest
import yaml


@dataclass
class RecordingReporter:
    """テスト用 reporter。呼ばれた内容を種類ごとに記録する。"""

    infos: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    sections: list[str] = field(default_factory=list)

    def info(self, text: str) -> None:
        self.infos.append(text)

    def warning(self, text: str) -> None:
        self.warnings.append(text)

    def error(self, text: str) -> None:
        self.errors.append(text)

    def section(self, title: str) -> None:
        self.sections.append(title)


@pytest.fixture()
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture()
def demo_config() -> dict:
    return {
        "appname": "demo",
        "apptype": "drupal",
        "host": "demo.localhost",
        "dist": "Local",
        "src": "./src",
        "drudock": {"version": "1.4"},
    }


@pytest.fixture()
def app_dir(tmp_path: Path, demo_config: dict) -> Path:
    """`.config.yml` と docker_demo/docker-compose.yml を持つアプリディレクトリ。"""
    (tmp_path / ".config.yml").write_text(yaml.safe_dump(demo_config), encoding="utf-8")
    docker_dir = tmp_path / "docker_demo"
    docker_dir.mkdir()
    (docker_dir / "docker-compose.yml").write_text("services: {}\n", encoding="utf-8")
    return tmp_path
