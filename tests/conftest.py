"""Shared fixtures."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any

import pytest

from action_status import ActionStatus
from config import ActionInputs, ActionSettings
from models.github_context import GitHubContext
from utils import CommandStep


class RecordingRunner:
    """Stands in for run_command: records every step and fakes the generator's output."""

    def __init__(self, fail_on: str | None = None, page: bytes = b"<html>card</html>") -> None:
        self.steps: list[CommandStep] = []
        self.fail_on = fail_on
        self.page = page

    def __call__(self, step: CommandStep) -> tuple[str, str]:
        self.steps.append(step)
        if step.name == self.fail_on:
            raise RuntimeError(f"{step.name} exploded")
        if step.name == "clean public folder":
            Path(step.cwd, "public").mkdir(exist_ok=True)
        if step.stdout_path:
            Path(step.stdout_path).write_bytes(self.page)
        return "", ""

    @property
    def names(self) -> list[str]:
        return [step.name for step in self.steps]


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    """Workspace with a data.json, as checked out by the CI host."""
    (tmp_path / "data.json").write_text('{"name": "Ada Lovelace"}', encoding="utf-8")
    return tmp_path


@pytest.fixture()
def github_env() -> dict[str, str]:
    return {
        "GITHUB_REF": "refs/heads/feature-x",
        "GITHUB_SHA": "0123abcd",
        "GITHUB_ACTOR": "octocat",
        "GITHUB_REPOSITORY": "owner/repo",
    }


@pytest.fixture()
def action_env(github_env: dict[str, str]) -> dict[str, str]:
    env = dict(github_env)
    env["INPUT_ACCESS-TOKEN"] = "abc"
    return env


@pytest.fixture()
def make_settings(workspace: Path):
    def _make(**overrides: Any) -> ActionSettings:
        context_fields = {
            "ref": overrides.pop("ref", "refs/heads/feature-x"),
            "sha": "0123abcd",
            "actor": "octocat",
            "repository": "owner/repo",
        }
        inputs_fields = {"access_token": "abc"}
        inputs_fields.update(overrides)
        return ActionSettings(
            inputs=ActionInputs(**inputs_fields),
            context=GitHubContext(**context_fields),
            workspace=str(workspace),
        )

    return _make


@pytest.fixture()
def status_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture()
def status(status_stream: io.StringIO) -> ActionStatus:
    return ActionStatus(stream=status_stream)


@pytest.fixture()
def missing_config(tmp_path: Path) -> str:
    return str(tmp_path / "no-such-config.yaml")


@pytest.fixture()
def make_runner():
    return RecordingRunner


@pytest.fixture()
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture()
def clean_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
