"""
Tests for platform resolution and OS prerequisites.
"""

from pathlib import Path

import pytest

from jenkins_provision.core.models.platform import PlatformFamily
from jenkins_provision.core.recipe.platform import (
    UnsupportedPlatformError,
    detect_os_id,
    install_prerequisites,
    resolve_platform,
)

MIRROR = "http://mirrors.jenkins-ci.org"


class TestResolvePlatform:
    def test_debian(self):
        profile = resolve_platform("debian", MIRROR)
        assert profile.family is PlatformFamily.DEBIAN
        assert profile.package_source == f"{MIRROR}/latest/debian/jenkins.deb"
        assert profile.package_backend == "dpkg"
        assert profile.pid_file == "/var/run/jenkins/jenkins.pid"
        assert profile.install_starts_service is True
        assert profile.default_group == "nogroup"

    def test_ubuntu_installs_from_repository(self):
        profile = resolve_platform("ubuntu", MIRROR)
        assert profile.family is PlatformFamily.UBUNTU
        assert profile.package_source is None
        assert profile.package_backend == "apt"
        assert profile.pid_file == "/var/run/jenkins/jenkins.pid"
        assert profile.install_starts_service is True

    @pytest.mark.parametrize("os_id", ["redhat", "centos"])
    def test_redhat_family(self, os_id):
        profile = resolve_platform(os_id, MIRROR)
        assert profile.family is PlatformFamily.REDHAT
        assert profile.os_id == os_id
        assert profile.package_source == f"{MIRROR}/latest/redhat/jenkins.rpm"
        assert profile.package_backend == "rpm"
        assert profile.pid_file == "/var/run/jenkins.pid"
        assert profile.install_starts_service is False
        assert profile.default_group == "jenkins"

    def test_normalizes_case(self):
        assert resolve_platform(" Ubuntu ", MIRROR).os_id == "ubuntu"

    @pytest.mark.parametrize("os_id", ["arch", "fedora", "windows", ""])
    def test_unsupported(self, os_id):
        with pytest.raises(UnsupportedPlatformError, match="Unsupported platform"):
            resolve_platform(os_id, MIRROR)

    def test_mirror_is_used(self):
        profile = resolve_platform("debian", "https://mirror.local")
        assert profile.package_source == "https://mirror.local/latest/debian/jenkins.deb"

    def test_to_dict(self):
        data = resolve_platform("centos", MIRROR).to_dict()
        assert data["family"] == "redhat"
        assert data["os_id"] == "centos"


class TestDetectOsId:
    def test_reads_id(self, tmp_path: Path):
        release = tmp_path / "os-release"
        release.write_text('NAME="Ubuntu"\nID=ubuntu\nID_LIKE=debian\n')
        assert detect_os_id(release) == "ubuntu"

    def test_quoted_id(self, tmp_path: Path):
        release = tmp_path / "os-release"
        release.write_text('ID="centos"\n')
        assert detect_os_id(release) == "centos"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(UnsupportedPlatformError):
            detect_os_id(tmp_path / "nope")

    def test_no_id(self, tmp_path: Path):
        release = tmp_path / "os-release"
        release.write_text('NAME="Something"\n')
        with pytest.raises(UnsupportedPlatformError):
            detect_os_id(release)


class TestInstallPrerequisites:
    def test_ubuntu(self, make_ctx, shell, config):
        ctx = make_ctx("ubuntu")
        install_prerequisites(ctx)
        assert shell.action_ids == ["prereq:ubuntu", "prereq:apt-update", "prereq:java"]
        assert shell.call_log[0].action.params["command"] == ["apt-get", "install", "-y", "-q", "curl"]
        assert shell.call_log[0].action.params["env"] == {"DEBIAN_FRONTEND": "noninteractive"}
        source = Path(config.packages.apt_source_file)
        assert source.read_text() == "deb http://pkg.jenkins-ci.org/debian binary/\n"

    def test_debian(self, make_ctx, shell, http, config):
        ctx = make_ctx("debian")
        install_prerequisites(ctx)
        assert shell.action_ids == ["prereq:debian"]
        assert shell.call_log[0].action.params["command"][-3:] == ["daemon", "default-jre-headless", "psmisc"]
        fetch = http.call_log[0].action
        assert fetch.id == "prereq:debian-key"
        assert fetch.params["url"] == f"{MIRROR}/debian/jenkins-ci.org.key"
        assert fetch.params["path"] == f"{config.tmp_dir}/jenkins-ci.org.key"

    def test_redhat_has_none(self, make_ctx, shell, http):
        install_prerequisites(make_ctx("redhat"))
        assert shell.call_count == 0
        assert http.call_count == 0
