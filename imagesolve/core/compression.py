"""
Compression utilities for repository metadata

Auto-detects and handles the formats used by rpm-md repositories:
- gzip (primary.xml.gz, most repositories)
- xz (Fedora/CentOS modules.yaml.xz)
- zstd (recent createrepo_c default)
- bzip2 (legacy)
"""

import shutil
from pathlib import Path
from typing import BinaryIO, Union

# Magic bytes for format detection
MAGIC_ZSTD = b'\x28\xb5\x2f\xfd'
MAGIC_GZIP = b'\x1f\x8b'
MAGIC_XZ = b'\xfd7zXZ\x00'
MAGIC_BZ2 = b'BZh'


def _zstd():
    try:
        import zstandard
    except ImportError:
        raise ImportError(
            "Module 'zstandard' required for zstd decompression. "
            "Install with: pip install zstandard"
        )
    return zstandard


def detect_format(data: bytes) -> str:
    """Detect compression format from magic bytes.

    Args:
        data: First 8+ bytes of the file

    Returns:
        Format name: 'zstd', 'gzip', 'xz', 'bzip2', or 'plain'
    """
    if data[:4] == MAGIC_ZSTD:
        return 'zstd'
    elif data[:2] == MAGIC_GZIP:
        return 'gzip'
    elif data[:6] == MAGIC_XZ:
        return 'xz'
    elif data[:3] == MAGIC_BZ2:
        return 'bzip2'
    else:
        return 'plain'


def decompress_bytes(data: bytes) -> bytes:
    """Decompress bytes, auto-detecting format."""
    fmt = detect_format(data)

    if fmt == 'zstd':
        dctx = _zstd().ZstdDecompressor()
        with dctx.stream_reader(data) as reader:
            return reader.read()
    elif fmt == 'gzip':
        import gzip
        return gzip.decompress(data)
    elif fmt == 'xz':
        import lzma
        return lzma.decompress(data)
    elif fmt == 'bzip2':
        import bz2
        return bz2.decompress(data)
    return data


def decompress_stream(filename: Union[str, Path]) -> BinaryIO:
    """Open a possibly compressed file and return a binary stream.

    The caller owns the returned stream and must close it.
    """
    path = Path(filename)

    with open(path, 'rb') as f:
        magic = f.read(8)

    fmt = detect_format(magic)

    if fmt == 'zstd':
        f = open(path, 'rb')
        dctx = _zstd().ZstdDecompressor()
        return dctx.stream_reader(f, closefd=True)
    elif fmt == 'gzip':
        import gzip
        return gzip.open(path, 'rb')
    elif fmt == 'xz':
        import lzma
        return lzma.open(path, 'rb')
    elif fmt == 'bzip2':
        import bz2
        return bz2.open(path, 'rb')
    return open(path, 'rb')


def decompress(filename: Union[str, Path], encoding: str = 'utf-8') -> str:
    """Decompress a file and return its content as text."""
    with decompress_stream(filename) as stream:
        return stream.read().decode(encoding, errors='replace')


def decompress_to(filename: Union[str, Path], dest: BinaryIO):
    """Decompress a file into an open binary file object."""
    with decompress_stream(filename) as stream:
        shutil.copyfileobj(stream, dest)
