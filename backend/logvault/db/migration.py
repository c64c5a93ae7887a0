from __future__ import annotations

from pathlib import Path
from typing import Iterable

from alembic import command
from alembic.config import Config


def _candidate_roots(start: Path) -> Iterable[Path]:
    """Yield potential project roots to look for Alembic configuration files."""

    current = start.resolve()
    for candidate in (current, *current.parents):
        yield candidate


def _find_project_root() -> Path:
    """Locate the directory containing ``alembic.ini``.

    The migrations live at the repository root, next to ``backend/``; walking
    the parents finds them from a source checkout as well as from an image
    that copies them beside the package.
    """

    for candidate in _candidate_roots(Path(__file__).parent):
        if (candidate / "alembic.ini").exists():
            return candidate

    raise RuntimeError("Unable to locate alembic.ini. Ensure it is bundled with logvault.")


def build_alembic_config(database_url: str) -> Config:
    project_root = _find_project_root()
    config = Config(str(project_root / "alembic.ini"))
    config.set_main_option("script_location", str(project_root / "alembic"))
    config.set_main_option("sqlalchemy.url", database_url)
    return config


def run_migrations(database_url: str, revision: str = "head") -> None:
    """Apply the Alembic migrations to ``database_url``.

    Blocking; call it before the event loop starts or from an executor.
    """

    command.upgrade(build_alembic_config(database_url), revision)
