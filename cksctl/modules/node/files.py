"""Host file edits applied under a configurable filesystem root.

On a real node the root is ``/``. All paths handed to ``HostFS`` are the
absolute paths as seen on the node; ``HostFS.path`` maps them under the root.
"""
import glob
import logging
import os
import pwd
import re
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Union

from jinja2 import Environment, FileSystemLoader, StrictUndefined

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def get_template_path() -> str:
    """Get the absolute path to the templates directory."""
    return os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'templates')


_env: Optional[Environment] = None


def render_template(name: str, **context) -> str:
    """Render one of the bundled Jinja2 templates."""
    global _env
    if _env is None:
        _env = Environment(
            loader=FileSystemLoader(get_template_path()),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined
        )
    return _env.get_template(name).render(**context)


class HostFS:
    """File operations on the node, relative to ``root``."""

    def __init__(self, root: PathLike = "/", dry_run: bool = False):
        self.root = Path(root)
        self.dry_run = dry_run

    def path(self, node_path: PathLike) -> Path:
        """Map an absolute node path under the configured root."""
        node_path = Path(node_path)
        if node_path.is_absolute():
            node_path = node_path.relative_to(node_path.anchor)
        return self.root / node_path

    def exists(self, node_path: PathLike) -> bool:
        return self.path(node_path).exists()

    def is_dir(self, node_path: PathLike) -> bool:
        return self.path(node_path).is_dir()

    def read_text(self, node_path: PathLike) -> str:
        """File contents, or '' when the file does not exist."""
        try:
            return self.path(node_path).read_text()
        except FileNotFoundError:
            return ''

    def write_text(self, node_path: PathLike, content: str, mode: Optional[int] = None) -> None:
        target = self.path(node_path)
        if self.dry_run:
            logger.info(f"[dry-run] Would write {node_path}")
            return
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        if mode is not None:
            os.chmod(target, mode)
        logger.debug(f"Wrote {node_path}")

    def mkdir(self, node_path: PathLike, mode: int = 0o755) -> None:
        if self.dry_run:
            logger.info(f"[dry-run] Would create directory {node_path}")
            return
        self.path(node_path).mkdir(parents=True, exist_ok=True, mode=mode)

    def copy(self, src: PathLike, dest: PathLike) -> None:
        if self.dry_run:
            logger.info(f"[dry-run] Would copy {src} -> {dest}")
            return
        target = self.path(dest)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.path(src), target)

    def chown_tree(self, node_path: PathLike, user: str) -> None:
        """Recursively hand ``node_path`` to ``user`` and the user's primary group."""
        if self.dry_run:
            logger.info(f"[dry-run] Would chown -R {user} {node_path}")
            return
        entry = pwd.getpwnam(user)
        top = self.path(node_path)
        os.chown(top, entry.pw_uid, entry.pw_gid)
        for dirpath, dirnames, filenames in os.walk(top):
            for name in dirnames + filenames:
                os.chown(os.path.join(dirpath, name), entry.pw_uid, entry.pw_gid)

    def remove(self, node_path: PathLike) -> bool:
        """Remove a file, symlink or directory tree. Absence is not an error.

        Returns:
            True if something was removed
        """
        target = self.path(node_path)
        if not target.exists() and not target.is_symlink():
            return False
        if self.dry_run:
            logger.info(f"[dry-run] Would remove {node_path}")
            return True
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()
        logger.debug(f"Removed {node_path}")
        return True

    def glob(self, pattern: str) -> List[str]:
        """Node paths matching an absolute glob pattern."""
        matches = glob.glob(str(self.path(pattern)))
        root = str(self.root).rstrip(os.sep)
        return sorted('/' + os.path.relpath(m, root or os.sep) for m in matches)

    def clear_dir(self, node_path: PathLike) -> int:
        """Remove the contents of a directory but keep the directory itself."""
        target = self.path(node_path)
        if not target.is_dir():
            return 0
        removed = 0
        for child in target.iterdir():
            removed += self.remove(Path(node_path) / child.name)
        return removed

    def ensure_line_present(self, node_path: PathLike, line: str, marker: Optional[str] = None) -> bool:
        """Append ``line`` unless the file already contains ``marker`` (default: the line).

        Returns:
            True if the file was changed
        """
        content = self.read_text(node_path)
        if (marker or line) in content:
            return False
        if content and not content.endswith('\n'):
            content += '\n'
        self.write_text(node_path, content + line + '\n')
        return True

    def ensure_block_present(self, node_path: PathLike, lines: Iterable[str], marker: str) -> bool:
        """Append a group of lines unless ``marker`` is already in the file."""
        content = self.read_text(node_path)
        if marker in content:
            return False
        if content and not content.endswith('\n'):
            content += '\n'
        self.write_text(node_path, content + ''.join(f"{line}\n" for line in lines))
        return True

    def remove_matching_lines(self, node_path: PathLike, patterns: Iterable[str]) -> int:
        """Drop every line containing any of the substrings in ``patterns``.

        Returns:
            Number of lines removed
        """
        if not self.exists(node_path):
            return 0
        patterns = list(patterns)
        kept, dropped = [], 0
        for line in self.read_text(node_path).splitlines(keepends=True):
            if any(p in line for p in patterns):
                dropped += 1
            else:
                kept.append(line)
        if dropped:
            self.write_text(node_path, ''.join(kept))
        return dropped

    def substitute(self, node_path: PathLike, pattern: str, replacement: str) -> int:
        """Regex substitution over each line of a file; returns lines changed."""
        if not self.exists(node_path):
            return 0
        regex = re.compile(pattern)
        changed = 0
        lines = []
        for line in self.read_text(node_path).splitlines(keepends=True):
            new = regex.sub(replacement, line)
            changed += new != line
            lines.append(new)
        if changed:
            self.write_text(node_path, ''.join(lines))
        return changed
