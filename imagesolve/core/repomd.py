"""
Parsers for rpm-md repository index files.

repomd.xml format example:
    <repomd xmlns="http://linux.duke.edu/metadata/repo">
      <revision>1700000000</revision>
      <data type="primary">
        <checksum type="sha256">...</checksum>
        <location href="repodata/...-primary.xml.gz"/>
        <size>1234</size>
      </data>
    </repomd>
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from xml.etree import ElementTree

logger = logging.getLogger(__name__)

NS_REPO = '{http://linux.duke.edu/metadata/repo}'
NS_METALINK = '{http://www.metalinker.org/}'

REPOMD_PATH = "repodata/repomd.xml"

# Metadata types used by the resolver, in load order
WANTED_TYPES = ('primary', 'modules')


@dataclass
class RepomdRecord:
    """One <data> entry of repomd.xml."""
    type: str
    location: str
    checksum_type: str = ""
    checksum: str = ""
    size: int = 0


@dataclass
class Repomd:
    """Parsed repomd.xml."""
    revision: str = ""
    records: Dict[str, RepomdRecord] = field(default_factory=dict)

    def get(self, data_type: str) -> Optional[RepomdRecord]:
        return self.records.get(data_type)


def _strip_ns(tag: str) -> str:
    return tag.rsplit('}', 1)[-1]


def parse_repomd(data: bytes) -> Repomd:
    """Parse repomd.xml content.

    Raises:
        ValueError: if the document is not a repomd index
    """
    try:
        root = ElementTree.fromstring(data)
    except ElementTree.ParseError as e:
        raise ValueError(f"invalid repomd.xml: {e}")

    if _strip_ns(root.tag) != 'repomd':
        raise ValueError(f"invalid repomd.xml: unexpected root element <{_strip_ns(root.tag)}>")

    repomd = Repomd()
    for child in root:
        tag = _strip_ns(child.tag)
        if tag == 'revision':
            repomd.revision = (child.text or '').strip()
        elif tag == 'data':
            record = RepomdRecord(type=child.get('type', ''), location='')
            for elem in child:
                etag = _strip_ns(elem.tag)
                if etag == 'location':
                    record.location = elem.get('href', '')
                elif etag == 'checksum':
                    record.checksum_type = elem.get('type', '')
                    record.checksum = (elem.text or '').strip()
                elif etag == 'size':
                    record.size = int((elem.text or '0').strip() or 0)
            if record.type and record.location:
                repomd.records[record.type] = record

    if 'primary' not in repomd.records:
        raise ValueError("invalid repomd.xml: no primary metadata")
    return repomd


def parse_metalink(data: bytes) -> List[str]:
    """Extract repository base URLs from a metalink document.

    Metalink URLs point at repomd.xml; the trailing repodata/repomd.xml is
    stripped. URLs are ordered by descending preference.
    """
    try:
        root = ElementTree.fromstring(data)
    except ElementTree.ParseError as e:
        raise ValueError(f"invalid metalink: {e}")

    urls = []
    for elem in root.iter():
        if _strip_ns(elem.tag) != 'url':
            continue
        url = (elem.text or '').strip()
        if not url.startswith(('http://', 'https://', 'file://')):
            continue
        try:
            preference = int(elem.get('preference', '0'))
        except ValueError:
            preference = 0
        if url.endswith(REPOMD_PATH):
            url = url[:-len(REPOMD_PATH)]
        urls.append((-preference, len(urls), url.rstrip('/')))

    return [url for _, _, url in sorted(urls)]


def parse_mirrorlist(text: str) -> List[str]:
    """Extract base URLs from a mirrorlist (one URL per line, # comments)."""
    urls = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        urls.append(line.rstrip('/'))
    return urls
