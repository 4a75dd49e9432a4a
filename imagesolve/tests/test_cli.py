"""Tests for CLI"""

import json

import pytest

from imagesolve.cli.main import create_parser, main


def write_request(path, distro_repo, chains, **extra):
    request = {
        "distro": "centos-9",
        "platform_id": "platform:el9",
        "releasever": "9",
        "repositories": {"x86_64": [distro_repo.to_dict()]},
        "arches": {"x86_64": chains},
    }
    request.update(extra)
    path.write_text(json.dumps(request))
    return str(path)


class TestParser:
    """Tests for argument parser."""

    def test_version_flag(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(['--version'])

    def test_depsolve_command(self):
        parser = create_parser()
        args = parser.parse_args(['depsolve', 'request.json', '--best-effort', '--workers', '2'])
        assert args.command == 'depsolve'
        assert args.request == 'request.json'
        assert args.best_effort is True
        assert args.fail_fast is False
        assert args.workers == 2
        assert args.cache is None

    def test_repos_requires_distro(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(['repos', '/etc/imagesolve'])

    def test_cache_clean(self):
        parser = create_parser()
        args = parser.parse_args(['cache', 'clean', '--arch', 'aarch64', '--cache', '/tmp/c'])
        assert args.cache_command == 'clean'
        assert args.arch == 'aarch64'
        assert args.distro is None
        assert args.cache == '/tmp/c'

    def test_no_command(self, capsys):
        assert main(['--nocolor']) == 2


class TestDepsolveCommand:
    """Tests for imagesolve depsolve."""

    def test_success(self, tmp_path, distro_repo, capsys):
        request = write_request(tmp_path / "request.json", distro_repo, {
            "os": [{"name": "os", "include": ["bash"]}],
        })
        status = main(['--nocolor', 'depsolve', request, '--cache', str(tmp_path / "cache")])
        output = json.loads(capsys.readouterr().out)

        assert status == 0
        packages = output["x86_64"]["os"]["packages"]
        assert "bash" in [p["name"] for p in packages]
        bash = next(p for p in packages if p["name"] == "bash")
        assert bash["checksum"].startswith("sha256:")
        assert bash["repo_id"] == "baseos"
        assert bash["remote_location"].endswith(".rpm")

    def test_failure_exit_status(self, tmp_path, distro_repo, capsys):
        request = write_request(tmp_path / "request.json", distro_repo, {
            "os": [{"name": "os", "include": ["no-such-package"]}],
        })
        status = main(['--nocolor', 'depsolve', request, '--cache', str(tmp_path / "cache")])
        output = json.loads(capsys.readouterr().out)

        assert status == 1
        assert output["x86_64"]["error"]["kind"] == "dependency-conflict"
        assert output["x86_64"]["error"]["set"] == "os"

    def test_best_effort(self, tmp_path, distro_repo, capsys):
        request = write_request(tmp_path / "request.json", distro_repo, {
            "build": [{"name": "build", "include": ["rpm"]}],
            "os": [{"name": "os", "include": ["no-such-package"]}],
        })
        status = main(['--nocolor', 'depsolve', request, '--best-effort',
                       '--cache', str(tmp_path / "cache")])
        output = json.loads(capsys.readouterr().out)

        assert status == 1
        assert "error" not in output["x86_64"]["build"]
        assert output["x86_64"]["os"]["error"]["kind"] == "dependency-conflict"

    def test_repos_directory(self, tmp_path, distro_repo, capsys):
        repos_dir = tmp_path / "defs"
        repos_dir.mkdir()
        (repos_dir / "centos-9.json").write_text(json.dumps({"x86_64": [distro_repo.to_dict()]}))
        request = write_request(tmp_path / "request.json", distro_repo, {
            "os": [{"name": "os", "include": ["bash"], "repositories": ["baseos"]}],
        }, repositories={})
        status = main(['--nocolor', 'depsolve', request, '--repos', str(repos_dir),
                       '--cache', str(tmp_path / "cache")])
        assert status == 0
        assert "x86_64" in json.loads(capsys.readouterr().out)

    def test_missing_request(self, tmp_path, capsys):
        assert main(['--nocolor', 'depsolve', str(tmp_path / "missing.json")]) == 2
        assert "missing.json" in capsys.readouterr().err

    def test_malformed_setting(self, tmp_path, distro_repo, monkeypatch, capsys):
        monkeypatch.setenv("IMAGESOLVE_FETCH_TIMEOUT", "soon")
        request = write_request(tmp_path / "request.json", distro_repo, {
            "os": [{"name": "os", "include": ["bash"]}],
        })
        assert main(['--nocolor', 'depsolve', request]) == 2
        assert "IMAGESOLVE_FETCH_TIMEOUT" in capsys.readouterr().err

    def test_invalid_request(self, tmp_path, capsys):
        path = tmp_path / "request.json"
        path.write_text(json.dumps({"distro": "centos-9"}))
        assert main(['--nocolor', 'depsolve', str(path)]) == 2
        assert "no architectures" in capsys.readouterr().err


class TestReposCommand:
    """Tests for imagesolve repos."""

    def test_json(self, tmp_path, distro_repo, capsys):
        (tmp_path / "centos-9.json").write_text(json.dumps({"x86_64": [distro_repo.to_dict()]}))
        assert main(['--nocolor', 'repos', str(tmp_path), '--distro', 'centos-9', '--json']) == 0
        output = json.loads(capsys.readouterr().out)
        assert [r["id"] for r in output["x86_64"]] == ["baseos"]

    def test_text(self, tmp_path, distro_repo, capsys):
        (tmp_path / "centos-9.json").write_text(json.dumps({"x86_64": [distro_repo.to_dict()]}))
        assert main(['--nocolor', 'repos', str(tmp_path), '--distro', 'centos-9']) == 0
        out = capsys.readouterr().out
        assert "x86_64" in out
        assert "baseos" in out

    def test_missing(self, tmp_path, capsys):
        assert main(['--nocolor', 'repos', str(tmp_path), '--distro', 'centos-9']) == 2


class TestCacheCommand:
    """Tests for imagesolve cache."""

    def test_info(self, tmp_path, cache, distro_repo, capsys):
        cache.ensure(distro_repo, "centos-9", "x86_64")
        assert main(['--nocolor', 'cache', 'info', '--cache', str(cache.path)]) == 0
        out = capsys.readouterr().out
        assert "Entries: 1" in out
        assert "baseos" in out

    def test_clean(self, tmp_path, cache, distro_repo, capsys):
        cache.ensure(distro_repo, "centos-9", "x86_64")
        assert main(['--nocolor', 'cache', 'clean', '--cache', str(cache.path)]) == 0
        assert "Removed 1" in capsys.readouterr().out
        assert cache.entries() == []

    def test_default_subcommand(self, capsys):
        assert main(['--nocolor', 'cache']) == 0
        assert "Entries: 0" in capsys.readouterr().out
