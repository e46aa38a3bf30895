from __future__ import annotations

import pytest

from freescribe.config import Settings


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(log_dir=str(tmp_path / "logs"))
