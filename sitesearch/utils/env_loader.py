from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union

from dotenv import find_dotenv, load_dotenv


ENV_FILE_VARIABLE = "SITESEARCH_ENV_FILE"


def resolve_env_file(dotenv_path: Union[str, Path, None] = None) -> Optional[Path]:
    """Pick the .env file: explicit path, then ``SITESEARCH_ENV_FILE``, then
    the nearest .env above the working directory."""
    candidate = dotenv_path or os.getenv(ENV_FILE_VARIABLE) or find_dotenv(usecwd=True)
    if not candidate:
        return None

    path = Path(candidate)
    return path if path.is_file() else None


def load_environment(dotenv_path: Union[str, Path, None] = None, *, override: bool = False) -> bool:
    """Load variables from the resolved .env file.

    Returns True when a file was found and loaded. Existing variables are
    kept unless ``override`` is set.
    """
    path = resolve_env_file(dotenv_path)
    if path is None:
        return False
    return load_dotenv(dotenv_path=path, override=override)
