"""
Repository metadata download

Downloads repomd.xml and the metadata files it references. Supports
http(s), file:// URLs and plain local paths. Files are written to a
temporary name next to the destination and renamed into place only once
complete and verified, so readers never see a partial file.
"""

import hashlib
import logging
import os
import ssl
import tempfile
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .cancel import CancelToken, check
from .config import DEFAULT_USER_AGENT, get_fetch_timeout

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadResult:
    """Result of a download operation."""
    success: bool
    url: str = ""
    path: Optional[Path] = None
    size: int = 0
    checksum: Optional[str] = None
    error: Optional[str] = None
    content: Optional[bytes] = None


def join_url(base: str, relative: str) -> str:
    """Join a repository base URL (or path) and a relative location."""
    return f"{base.rstrip('/')}/{relative.lstrip('/')}"


def _local_path(url: str) -> Optional[Path]:
    """Return the filesystem path for file:// URLs and plain paths, else None."""
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme == 'file':
        return Path(urllib.parse.unquote(parsed.path))
    if not parsed.scheme:
        return Path(url)
    return None


class Fetcher:
    """Downloads metadata files with cancellation support."""

    def __init__(self, timeout: int = None, user_agent: str = DEFAULT_USER_AGENT):
        self.timeout = timeout or get_fetch_timeout()
        self.user_agent = user_agent

    def _open(self, url: str, ignore_ssl: bool = False):
        local = _local_path(url)
        if local is not None:
            return open(local, 'rb')
        req = urllib.request.Request(url)
        req.add_header('User-Agent', self.user_agent)
        context = None
        if ignore_ssl and url.startswith('https://'):
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return urllib.request.urlopen(req, timeout=self.timeout, context=context)

    def read(self, url: str, cancel: CancelToken = None,
             ignore_ssl: bool = False) -> DownloadResult:
        """Download a small document into memory (metalink, mirrorlist)."""
        check(cancel)
        try:
            with self._open(url, ignore_ssl) as response:
                data = response.read()
        except urllib.error.HTTPError as e:
            return DownloadResult(success=False, url=url, error=f"HTTP {e.code}: {e.reason}")
        except urllib.error.URLError as e:
            return DownloadResult(success=False, url=url, error=f"URL error: {e.reason}")
        except OSError as e:
            return DownloadResult(success=False, url=url, error=str(e))
        return DownloadResult(success=True, url=url, size=len(data), content=data)

    def fetch(self, url: str, dest: Path, checksum_type: str = "", checksum: str = "",
              cancel: CancelToken = None, ignore_ssl: bool = False) -> DownloadResult:
        """Download url to dest atomically.

        Args:
            url: Source URL or local path
            dest: Destination path (parent is created)
            checksum_type: Expected checksum algorithm (e.g. "sha256"), optional
            checksum: Expected hex digest, optional
            cancel: Cancellation token checked between chunks

        Returns:
            DownloadResult; on failure dest is left untouched

        Raises:
            CancelledError: if cancelled; the temporary file is removed
        """
        check(cancel)
        dest.parent.mkdir(parents=True, exist_ok=True)

        hasher = None
        if checksum_type:
            try:
                hasher = hashlib.new(checksum_type)
            except ValueError:
                logger.warning(f"Unsupported checksum type {checksum_type} for {url}, not verifying")

        fd, tmp_name = tempfile.mkstemp(prefix='.tmp-', dir=dest.parent)
        tmp_path = Path(tmp_name)
        size = 0
        try:
            try:
                with self._open(url, ignore_ssl) as response, os.fdopen(fd, 'wb') as out:
                    fd = None
                    while True:
                        check(cancel)
                        chunk = response.read(CHUNK_SIZE)
                        if not chunk:
                            break
                        out.write(chunk)
                        if hasher:
                            hasher.update(chunk)
                        size += len(chunk)
            except urllib.error.HTTPError as e:
                return DownloadResult(success=False, url=url, error=f"HTTP {e.code}: {e.reason}")
            except urllib.error.URLError as e:
                return DownloadResult(success=False, url=url, error=f"URL error: {e.reason}")
            except OSError as e:
                return DownloadResult(success=False, url=url, error=str(e))

            digest = hasher.hexdigest() if hasher else None
            if hasher and checksum and digest != checksum:
                return DownloadResult(
                    success=False, url=url,
                    error=f"checksum mismatch: expected {checksum_type}:{checksum}, got {digest}")

            os.replace(tmp_path, dest)
            logger.debug(f"Fetched {url} ({size} bytes)")
            return DownloadResult(success=True, url=url, path=dest, size=size, checksum=digest)
        finally:
            if fd is not None:
                os.close(fd)
            if tmp_path.exists():
                tmp_path.unlink()

