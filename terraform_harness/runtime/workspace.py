"""Scenario workspaces: unique naming and isolated module copies."""

import logging
import secrets
import shutil
import string
import tempfile
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

# Lowercase only: resource names on most providers reject capitals.
UNIQUE_ID_ALPHABET = string.ascii_lowercase + string.digits

_COPY_IGNORE = shutil.ignore_patterns(
    ".terraform",
    "terraform.tfstate",
    "terraform.tfstate.*",
    "*.tfplan",
    ".git",
    "__pycache__",
)


def unique_id(length: int = 6) -> str:
    """Return a short random token for naming scenario resources."""
    if length < 1:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(UNIQUE_ID_ALPHABET) for _ in range(length))


class IsolatedWorkspace:
    """A temporary copy of a module tree, private to one scenario.

    Terraform keeps ``.terraform/`` and local state next to the sources, so
    two scenarios running in the same directory would trample each other.
    The whole ``root`` is copied (modules commonly reference ``../..``) and
    ``working_dir`` points at ``module_dir`` inside the copy.
    """

    def __init__(self, module_dir: Union[str, Path], root: Optional[Union[str, Path]] = None):
        """
        Initialize workspace.

        Args:
            module_dir: Module directory to run terraform in
            root: Tree to copy. Defaults to ``module_dir`` itself.
        """
        self.module_dir = Path(module_dir).resolve()
        self.root = Path(root).resolve() if root else self.module_dir
        try:
            relative = self.module_dir.relative_to(self.root)
        except ValueError:
            raise ValueError(f"{self.module_dir} is not inside {self.root}") from None

        self._temp_dir: Optional[tempfile.TemporaryDirectory] = tempfile.TemporaryDirectory(
            prefix="terraform-harness-"
        )
        copy_root = Path(self._temp_dir.name) / self.root.name
        shutil.copytree(self.root, copy_root, ignore=_COPY_IGNORE)
        self.working_dir = copy_root / relative
        logger.debug(f"Copied {self.root} to {copy_root}")

    def cleanup(self) -> None:
        """Remove the temporary copy."""
        if self._temp_dir:
            self._temp_dir.cleanup()
            self._temp_dir = None

    def __enter__(self) -> "IsolatedWorkspace":
        return self

    def __exit__(self, *args) -> None:
        self.cleanup()
