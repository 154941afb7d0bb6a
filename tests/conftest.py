from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from assetflow.logging import THIRD_PARTY_LEVELS
from tests._fixtures.project_builder import ProjectBuilder


@pytest.fixture
def project(tmp_path: Path) -> ProjectBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return ProjectBuilder(tmp_path)


@pytest.fixture(autouse=True)
def _reset_assetflow_logger() -> Iterator[None]:
    """Drop handlers installed by CLI runs so later tests do not log to closed streams."""
    yield
    for name in ("assetflow", *THIRD_PARTY_LEVELS):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
