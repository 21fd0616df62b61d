"""Small helpers shared across lokoctl modules."""
import os
from pathlib import Path
from typing import Any, Dict, Union

import typer

from ..errors import LokoctlError


def deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries, with update taking precedence."""
    for key, value in update.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            base[key] = deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def write_to_file(path: Union[str, Path], content: str) -> None:
    """Create a file at ``path`` with ``content`` and flush it to disk."""
    path = Path(path)
    try:
        with open(path, "w") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        raise LokoctlError(f"writing to file {str(path)!r}: {e}") from e


def expand_path(path: str) -> str:
    """Expand ``~`` in a path, returning the original path if that fails."""
    try:
        return os.path.expanduser(path)
    except (KeyError, RuntimeError):
        return path


def ask_for_confirmation(message: str) -> bool:
    """Ask the user to confirm an action by typing "yes"."""
    answer = typer.prompt(f'{message} [type "yes" to continue]', default="", show_default=False)
    return answer.strip() == "yes"
