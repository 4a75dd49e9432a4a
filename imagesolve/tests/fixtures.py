"""Helpers generating small rpm-md repositories on disk."""

import gzip
import hashlib
from pathlib import Path
from typing import Dict, List, Optional
from xml.sax.saxutils import quoteattr

from imagesolve.core.models import Repository

FLAG_NAMES = {'=': 'EQ', '<': 'LT', '>': 'GT', '<=': 'LE', '>=': 'GE'}


def pkg(name: str, version: str = "1.0", release: str = "1", arch: str = "x86_64",
        epoch: int = 0, requires=(), provides=(), recommends=(), conflicts=()) -> Dict:
    """Describe a package for write_repo()."""
    return {
        'name': name, 'version': version, 'release': release, 'arch': arch,
        'epoch': epoch, 'requires': list(requires), 'provides': list(provides),
        'recommends': list(recommends), 'conflicts': list(conflicts),
    }


def _entry(dep: str) -> str:
    parts = dep.split()
    if len(parts) == 3:
        name, op, evr = parts
        epoch = "0"
        if ':' in evr:
            epoch, evr = evr.split(':', 1)
        ver, _, rel = evr.partition('-')
        attrs = f'name={quoteattr(name)} flags="{FLAG_NAMES[op]}" epoch="{epoch}" ver="{ver}"'
        if rel:
            attrs += f' rel="{rel}"'
        return f'<rpm:entry {attrs}/>'
    return f'<rpm:entry name={quoteattr(dep)}/>'


def _deps(tag: str, deps: List[str]) -> str:
    if not deps:
        return ""
    entries = "".join(_entry(d) for d in deps)
    return f"<rpm:{tag}>{entries}</rpm:{tag}>"


def _package_xml(p: Dict) -> str:
    nevra = f"{p['name']}-{p['version']}-{p['release']}.{p['arch']}"
    pkgid = hashlib.sha256(nevra.encode()).hexdigest()
    self_provide = (f'<rpm:entry name={quoteattr(p["name"])} flags="EQ" epoch="{p["epoch"]}" '
                    f'ver="{p["version"]}" rel="{p["release"]}"/>')
    provides = self_provide + "".join(_entry(d) for d in p['provides'])
    return (
        '<package type="rpm">'
        f'<name>{p["name"]}</name>'
        f'<arch>{p["arch"]}</arch>'
        f'<version epoch="{p["epoch"]}" ver="{p["version"]}" rel="{p["release"]}"/>'
        f'<checksum type="sha256" pkgid="YES">{pkgid}</checksum>'
        f'<summary>{p["name"]}</summary>'
        f'<location href="Packages/{nevra}.rpm"/>'
        '<format>'
        f'<rpm:provides>{provides}</rpm:provides>'
        f'{_deps("requires", p["requires"])}'
        f'{_deps("conflicts", p["conflicts"])}'
        f'{_deps("recommends", p["recommends"])}'
        '</format>'
        '</package>'
    )


def write_repo(root: Path, packages: List[Dict], modules_yaml: Optional[str] = None,
               revision: str = "1700000000") -> Path:
    """Write an rpm-md repository (repodata/repomd.xml + primary.xml.gz) under root."""
    repodata = root / "repodata"
    repodata.mkdir(parents=True, exist_ok=True)

    primary = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<metadata xmlns="http://linux.duke.edu/metadata/common" '
        'xmlns:rpm="http://linux.duke.edu/metadata/rpm" '
        f'packages="{len(packages)}">'
        + "".join(_package_xml(p) for p in packages)
        + '</metadata>\n'
    ).encode()
    records = [('primary', f"primary.xml.gz", gzip.compress(primary))]
    if modules_yaml is not None:
        records.append(('modules', "modules.yaml.gz", gzip.compress(modules_yaml.encode())))

    data_xml = ""
    for data_type, filename, content in records:
        digest = hashlib.sha256(content).hexdigest()
        href = f"repodata/{digest}-{filename}"
        (root / href).write_bytes(content)
        data_xml += (f'<data type="{data_type}">'
                     f'<checksum type="sha256">{digest}</checksum>'
                     f'<location href="{href}"/>'
                     f'<size>{len(content)}</size>'
                     '</data>')

    (repodata / "repomd.xml").write_text(
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<repomd xmlns="http://linux.duke.edu/metadata/repo" '
        'xmlns:rpm="http://linux.duke.edu/metadata/rpm">'
        f'<revision>{revision}</revision>{data_xml}</repomd>\n')
    return root


def make_repository(root: Path, packages: List[Dict], repo_id: str = "baseos",
                    **kwargs) -> Repository:
    """write_repo() and return a Repository pointing at it with a file:// URL."""
    modules_yaml = kwargs.pop('modules_yaml', None)
    write_repo(root, packages, modules_yaml=modules_yaml)
    return Repository(id=repo_id, baseurls=(f"file://{root}",), **kwargs)


# A small slice of a RHEL-like distribution
DISTRO_PACKAGES = [
    pkg("filesystem", "3.16", "2.el9", "x86_64"),
    pkg("glibc", "2.34", "60.el9", "x86_64", requires=["filesystem"],
        provides=["libc.so.6()(64bit)"]),
    pkg("glibc", "2.34", "60.el9", "i686", requires=["filesystem"], provides=["libc.so.6"]),
    pkg("bash", "5.1.8", "6.el9", "x86_64", requires=["libc.so.6()(64bit)"],
        provides=["/bin/sh"]),
    pkg("openssl-libs", "3.0.7", "24.el9", "x86_64", epoch=1,
        requires=["libc.so.6()(64bit)"], provides=["libssl.so.3()(64bit)"]),
    pkg("bind-license", "9.16.23", "14.el9", "noarch", epoch=32),
    pkg("bind-libs", "9.16.23", "14.el9", "x86_64", epoch=32,
        requires=["bind-license = 32:9.16.23-14.el9", "libssl.so.3()(64bit)"]),
    pkg("bind", "9.16.23", "14.el9", "x86_64", epoch=32,
        requires=["bind-libs = 32:9.16.23-14.el9", "/bin/sh"],
        recommends=["bind-utils"]),
    pkg("bind-utils", "9.16.23", "14.el9", "x86_64", epoch=32,
        requires=["bind-libs = 32:9.16.23-14.el9"]),
    pkg("kernel", "5.14.0", "362.el9", "x86_64", requires=["kernel-core"]),
    pkg("kernel-core", "5.14.0", "362.el9", "x86_64", requires=["/bin/sh"]),
    pkg("kernel-tools", "5.14.0", "362.el9", "x86_64", requires=["bash"]),
    pkg("dracut", "057", "44.el9", "x86_64", requires=["bash"]),
    pkg("dracut-config-rescue", "057", "44.el9", "x86_64", requires=["dracut"]),
    pkg("rpm", "4.16.1.3", "25.el9", "x86_64", requires=["bash", "libssl.so.3()(64bit)"]),
    pkg("python3", "3.9.18", "1.el9", "x86_64", requires=["glibc"]),
    pkg("python3", "3.11.5", "1.el9", "x86_64", requires=["glibc"]),
    pkg("nano", "5.6.1", "5.el9", "x86_64", requires=["glibc"], conflicts=["vim-minimal"]),
    pkg("vim-minimal", "8.2.2637", "20.el9", "x86_64", requires=["glibc"],
        conflicts=["nano"]),
    pkg("editor-bundle", "1.0", "1.el9", "noarch", requires=["nano", "vim-minimal"]),
]


