from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from elmdev.build import BuildLaunchError
from elmdev.config import DevConfig


class FakeBuild:
    """Stands in for BuildTrigger, recording calls instead of spawning."""

    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self.calls: List[int] = []

    def trigger(self):
        if self.fail:
            raise BuildLaunchError("Unable to launch 'elm': [Errno 2] No such file or directory")
        self.calls.append(len(self.calls) + 1)
        return None


@pytest.fixture
def project(tmp_path: Path) -> DevConfig:
    src = tmp_path / "src"
    public = tmp_path / "public"
    src.mkdir()
    public.mkdir()
    (src / "Main.elm").write_text("module Main exposing (main)\n")
    return DevConfig(
        source_dir=src,
        entry_file=src / "Main.elm",
        output_file=public / "elm.js",
        index_file=public / "index.html",
        port=0,
    )


@pytest.fixture
def fake_build() -> FakeBuild:
    return FakeBuild()
