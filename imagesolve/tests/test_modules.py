"""Tests for module/platform filtering predicates"""

import pytest

from imagesolve.core.modules import (
    ModuleStream, active_streams, is_package_included, masked_names, nevra_key,
    parse_artifact, parse_modules_yaml, platform_compatible, platform_stream,
)

MODULES_YAML = """\
---
document: modulemd
version: 2
data:
  name: postgresql
  stream: "15"
  version: 9020020230101
  context: rhel9
  arch: x86_64
  dependencies:
    - requires:
        platform: [el9]
  artifacts:
    rpms:
      - postgresql-0:15.3-1.module_el9.x86_64
      - postgresql-0:15.3-1.module_el9.src
      - postgresql-server-0:15.3-1.module_el9.x86_64
...
---
document: modulemd-defaults
version: 1
data:
  module: postgresql
  stream: "15"
...
---
document: modulemd-translations
version: 1
data: {}
...
"""


def stream(name="postgresql", stream="15", platforms=((("el9",),)), artifacts=()):
    return ModuleStream(name=name, stream=stream, platforms=platforms,
                        artifacts=frozenset(artifacts))


class TestParse:
    """Tests for modules.yaml parsing."""

    def test_parse(self):
        metadata = parse_modules_yaml(MODULES_YAML)
        assert len(metadata.streams) == 1
        s = metadata.streams[0]
        assert (s.name, s.stream, s.context) == ("postgresql", "15", "rhel9")
        assert s.platforms == (("el9",),)
        assert s.rpm_names == {"postgresql", "postgresql-server"}
        assert s.nsvca == "postgresql:15:9020020230101:rhel9:x86_64"
        assert metadata.defaults == {"postgresql": "15"}

    def test_invalid_yaml(self):
        with pytest.raises(ValueError):
            parse_modules_yaml("document: [unclosed")

    def test_streams_by_artifact(self):
        metadata = parse_modules_yaml(MODULES_YAML)
        index = metadata.streams_by_artifact()
        assert "postgresql-15.3-1.module_el9.x86_64" in index

    def test_parse_artifact(self):
        assert parse_artifact("bind-32:9.16.23-14.el9.x86_64") == (
            "bind", 32, "9.16.23", "14.el9", "x86_64")
        with pytest.raises(ValueError):
            parse_artifact("garbage")

    def test_nevra_key(self):
        assert nevra_key("bash", 0, "5.1", "1", "x86_64") == "bash-5.1-1.x86_64"


class TestPlatform:
    """Tests for platform compatibility."""

    def test_platform_stream(self):
        assert platform_stream("platform:el9") == "el9"
        assert platform_stream("") == ""

    def test_compatible(self):
        assert platform_compatible(stream(), "platform:el9")
        assert not platform_compatible(stream(), "platform:el8")

    def test_no_platform_requirement(self):
        assert platform_compatible(stream(platforms=()), "platform:el8")
        assert platform_compatible(stream(platforms=(None,)), "platform:el8")

    def test_empty_platform_id(self):
        assert platform_compatible(stream(), "")

    def test_negative_entries(self):
        s = stream(platforms=(("-el8",),))
        assert platform_compatible(s, "platform:el9")
        assert not platform_compatible(s, "platform:el8")

    def test_any_dependency_entry(self):
        s = stream(platforms=(("el8",), ("el9",)))
        assert platform_compatible(s, "platform:el9")


class TestInclusion:
    """Tests for the inclusion predicate."""

    def test_non_modular_included(self):
        assert is_package_included([], "platform:el9", {})

    def test_active_stream(self):
        assert is_package_included([stream()], "platform:el9", {"postgresql": "15"})

    def test_inactive_stream(self):
        assert not is_package_included([stream()], "platform:el9", {"postgresql": "16"})
        assert not is_package_included([stream()], "platform:el9", {})

    def test_incompatible_platform(self):
        assert not is_package_included([stream()], "platform:el8", {"postgresql": "15"})

    def test_active_streams(self):
        assert active_streams({"postgresql": "15", "nodejs": "18"}, ["nodejs:20"]) == {
            "postgresql": "15", "nodejs": "20"}

    def test_masked_names(self):
        s = stream(artifacts=["postgresql-0:15.3-1.el9.x86_64"])
        assert masked_names([s], "platform:el9", {"postgresql": "15"}) == {"postgresql"}
        assert masked_names([s], "platform:el9", {}) == set()
        assert masked_names([s], "platform:el8", {"postgresql": "15"}) == set()
