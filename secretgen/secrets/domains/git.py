"""Version control staging of generated secrets."""
import logging
import subprocess
from pathlib import Path

from .errors import VCSStageFailure

logger = logging.getLogger(__name__)


def stage_path(root: Path, path: str) -> None:
    """
    Add a generated file to the git index.

    Raises:
        VCSStageFailure: If git is missing or exits with a non-zero status
    """
    try:
        result = subprocess.run(
            ["git", "add", "--", path],
            cwd=str(root),
            capture_output=True,
            text=True,
        )
    except OSError as e:
        raise VCSStageFailure(f"Failed to add generated secret to git: {e}")

    if result.returncode != 0:
        raise VCSStageFailure(
            f"Failed to add generated secret {path} to git: {result.stderr.strip()}"
        )
    logger.info(f"Staged {path} in git")
