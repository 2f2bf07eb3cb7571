"""Downloads of manifests, keys and release archives."""
import logging
import os
import tarfile
import tempfile
from pathlib import Path
from typing import Optional

import requests

from cksctl.errors import ProvisionError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class DownloadError(ProvisionError):
    """Raised when a release artifact cannot be fetched or unpacked."""
    pass


class Fetcher:
    """Fetches artifacts over HTTPS and unpacks release tarballs."""

    def __init__(self, timeout: int = 60, dry_run: bool = False, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.dry_run = dry_run
        self.session = session or requests.Session()

    def download(self, url: str, dest: Path) -> Path:
        """Stream ``url`` into ``dest``, creating parent directories."""
        dest = Path(dest)
        if self.dry_run:
            logger.info(f"[dry-run] Would download {url} -> {dest}")
            return dest
        logger.debug(f"Downloading {url}")
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self.session.get(url, stream=True, timeout=self.timeout, allow_redirects=True) as response:
                response.raise_for_status()
                with open(dest, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
        except requests.RequestException as e:
            raise DownloadError(f"Failed to download {url}: {e}") from e
        return dest

    def install_binary(self, url: str, member: str, dest_dir: Path, name: Optional[str] = None,
                       mode: int = 0o755) -> Path:
        """Download a .tar.gz release and install one member of it as an executable.

        Args:
            url: Release tarball URL
            member: Path of the binary inside the archive
            dest_dir: Directory to install into (e.g. /usr/local/bin under the host root)
            name: Installed file name (defaults to the member's basename)
            mode: File permissions of the installed binary

        Returns:
            Path of the installed binary
        """
        dest_dir = Path(dest_dir)
        target = dest_dir / (name or os.path.basename(member))
        if self.dry_run:
            logger.info(f"[dry-run] Would install {member} from {url} -> {target}")
            return target

        with tempfile.TemporaryDirectory(prefix='cksctl-') as tmp:
            archive = self.download(url, Path(tmp) / 'release.tar.gz')
            try:
                with tarfile.open(archive, 'r:gz') as tar:
                    info = _find_member(tar, member)
                    if info is None:
                        raise DownloadError(f"{member} not found in {url}")
                    source = tar.extractfile(info)
                    if source is None:
                        raise DownloadError(f"{member} in {url} is not a regular file")
                    dest_dir.mkdir(parents=True, exist_ok=True)
                    with source, open(target, 'wb') as out:
                        out.write(source.read())
            except tarfile.TarError as e:
                raise DownloadError(f"Invalid archive from {url}: {e}") from e

        os.chmod(target, mode)
        logger.debug(f"Installed {target}")
        return target


def _find_member(tar: tarfile.TarFile, member: str) -> Optional[tarfile.TarInfo]:
    """Look a member up with or without a leading './'."""
    for candidate in (member, f"./{member}"):
        try:
            return tar.getmember(candidate)
        except KeyError:
            continue
    return None
