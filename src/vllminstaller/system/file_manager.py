import os
import stat
import tempfile
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

_READ_ALL = stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH
_EXEC_ALL = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


class FileManager:
    """File system operations performed directly by the installer process."""

    @staticmethod
    def write_file_atomic(path: Path, content: str, mode: int) -> None:
        """Write a file via a temporary sibling and rename it into place.

        The final path never holds partially written content.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp_path.chmod(mode)
            tmp_path.replace(path)
        finally:
            tmp_path.unlink(missing_ok=True)

    @staticmethod
    def _add_world_read(path: Path) -> None:
        mode = path.lstat().st_mode
        new_mode = stat.S_IMODE(mode) | _READ_ALL
        # Same rule as chmod's capital X: directories, or files someone can already execute
        if stat.S_ISDIR(mode) or mode & _EXEC_ALL:
            new_mode |= _EXEC_ALL
        if new_mode != stat.S_IMODE(mode):
            path.chmod(new_mode)

    @classmethod
    def grant_world_read(cls, root: Path) -> None:
        """Recursively grant read to everyone, and traverse on directories (``chmod -R a+rX``).

        A symlinked root is resolved first, as chmod does for paths named on its
        command line. Symlinks inside the tree are left untouched and not followed.
        """
        root = root.resolve()
        cls._add_world_read(root)
        for dirpath, dirnames, filenames in os.walk(root):
            for name in dirnames + filenames:
                entry = Path(dirpath) / name
                if not entry.is_symlink():
                    cls._add_world_read(entry)
        logger.info("Granted read access to all users", path=str(root))
