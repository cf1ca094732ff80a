"""Tests for request path parsing and composite keys."""

import pytest

from speardrive.data.config import (
    GitlabConfig,
    LocalSourceConfig,
    RemoteStaticConfig,
    SpeardriveConfig,
)
from speardrive.errors import MalformedPlan, UnknownRepoType, UnknownSourceName
from speardrive.plan import GitlabSpec, LocalSpec, Plan, RemoteStaticSpec, parse_request_path

REPO_TYPES = {"rpm"}


@pytest.fixture
def config() -> SpeardriveConfig:
    return SpeardriveConfig(
        composites_cache="/nonexistent/composites",
        gitlabs={
            "myserver": GitlabConfig(
                api_key="key", hostname="git.example.com", local_cache="/nonexistent/gl"
            )
        },
        local_sources={"builds": LocalSourceConfig(root="/nonexistent/builds")},
        remote_sources={
            "mirror": RemoteStaticConfig(
                base_url="https://mirror.example.com", local_cache="/nonexistent/mirror"
            )
        },
    )


def parse(request_path: str, config: SpeardriveConfig) -> tuple[Plan, str]:
    return parse_request_path(request_path, config, REPO_TYPES)


class TestParseRequestPath:
    def test_two_gitlab_jobs(self, config: SpeardriveConfig):
        plan, file_path = parse(
            "/myserver/foo/323/-/myserver/bar/111/-/rpm/repodata/repomd.xml", config
        )
        assert plan.sources == (
            GitlabSpec("myserver", "foo", 323),
            GitlabSpec("myserver", "bar", 111),
        )
        assert plan.repo_type == "rpm"
        assert file_path == "repodata/repomd.xml"

    def test_namespaced_gitlab_project(self, config: SpeardriveConfig):
        plan, _ = parse("myserver/group/sub/proj/7/-/rpm/x.rpm", config)
        assert plan.sources == (GitlabSpec("myserver", "group/sub/proj", 7),)

    def test_all_source_kinds(self, config: SpeardriveConfig):
        plan, file_path = parse("builds/el9/-/mirror/extras/-/myserver/foo/1/-/rpm/a.rpm", config)
        assert plan.sources == (
            LocalSpec("builds", "el9"),
            RemoteStaticSpec("mirror", "extras"),
            GitlabSpec("myserver", "foo", 1),
        )
        assert file_path == "a.rpm"

    def test_file_path_may_contain_separator(self, config: SpeardriveConfig):
        _, file_path = parse("builds/el9/-/rpm/weird/-/name.rpm", config)
        assert file_path == "weird/-/name.rpm"

    def test_empty_file_path(self, config: SpeardriveConfig):
        _, file_path = parse("builds/el9/-/rpm/", config)
        assert file_path == ""
        _, file_path = parse("builds/el9/-/rpm", config)
        assert file_path == ""

    @pytest.mark.parametrize(
        "request_path",
        [
            "",
            "/",
            # Gitlab spec missing the job id.
            "myserver/foo/-/rpm/repodata/repomd.xml",
            # Job id is not a number.
            "myserver/foo/latest/-/rpm/repodata/repomd.xml",
            # Local spec with too many segments.
            "builds/a/b/-/rpm/x",
            # Local spec with too few segments.
            "builds/-/rpm/x",
            # No repository type at all.
            "myserver/foo/1",
            "myserver/foo/1/-/builds/el9",
            # No sources.
            "rpm/repodata/repomd.xml",
            # Empty source spec.
            "-/rpm/x",
            "builds/el9/-/-/rpm/x",
            # Path traversal.
            "builds/../-/rpm/x",
            "builds/./-/rpm/x",
            "myserver/foo/../1/-/rpm/x",
            # Empty segment.
            "builds//el9/-/rpm/x",
        ],
    )
    def test_malformed(self, request_path: str, config: SpeardriveConfig):
        with pytest.raises(MalformedPlan):
            parse(request_path, config)

    def test_unknown_source(self, config: SpeardriveConfig):
        with pytest.raises(UnknownSourceName):
            parse("otherserver/foo/1/-/rpm/x", config)

    def test_unknown_repo_type(self, config: SpeardriveConfig):
        with pytest.raises(UnknownRepoType):
            parse("myserver/foo/1/-/deb/dists/stable/Release", config)


class TestCompositeKey:
    def test_stable(self, config: SpeardriveConfig):
        (a, _) = parse("myserver/foo/1/-/builds/x/-/rpm/a", config)
        (b, _) = parse("myserver/foo/1/-/builds/x/-/rpm/repodata/repomd.xml", config)
        assert a.composite_key() == b.composite_key()
        assert len(a.composite_key()) == 64

    def test_order_sensitive(self, config: SpeardriveConfig):
        (a, _) = parse("myserver/foo/1/-/builds/x/-/rpm/a", config)
        (b, _) = parse("builds/x/-/myserver/foo/1/-/rpm/a", config)
        assert a.composite_key() != b.composite_key()

    def test_kind_distinguishes_sources(self):
        local = Plan((LocalSpec("src", "x"),), "rpm")
        remote = Plan((RemoteStaticSpec("src", "x"),), "rpm")
        assert local.composite_key() != remote.composite_key()

    def test_repo_type_matters(self):
        sources = (LocalSpec("src", "x"),)
        assert Plan(sources, "rpm").composite_key() != Plan(sources, "other").composite_key()
