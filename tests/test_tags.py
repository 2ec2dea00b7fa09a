"""Tests for monover.tags."""

from __future__ import annotations

from monover.errors import ErrorKind
from monover.models import Diagnostic, Tag, TagScope
from monover.tags import candidate_tags, parse_tag, parse_tags, select_base_tag
from monover.versions import parse_version


class TestParseTag:
    def test_global_tag(self) -> None:
        tag = parse_tag("v1.2.3", "abc")
        assert tag.scope is TagScope.GLOBAL
        assert str(tag.version) == "1.2.3"
        assert tag.project is None

    def test_project_tag_dash(self) -> None:
        tag = parse_tag("ProjectA-v1.2.0", "abc")
        assert tag.scope is TagScope.PROJECT
        assert tag.project == "ProjectA"
        assert str(tag.version) == "1.2.0"

    def test_project_tag_slash(self) -> None:
        tag = parse_tag("my-lib/v0.3.0", "abc")
        assert tag.scope is TagScope.PROJECT
        assert tag.project == "my-lib"

    def test_project_name_containing_prefix(self) -> None:
        tag = parse_tag("my-v-tool-v2.0.0", "abc")
        assert tag.project == "my-v-tool"
        assert str(tag.version) == "2.0.0"

    def test_project_name_starting_with_prefix(self) -> None:
        tag = parse_tag("vendor-v1.0.0", "abc")
        assert tag.scope is TagScope.PROJECT
        assert tag.project == "vendor"

    def test_project_name_that_looks_like_a_version(self) -> None:
        tag = parse_tag("v2-lib-v1.2.0", "abc")
        assert tag.scope is TagScope.PROJECT
        assert tag.project == "v2-lib"
        assert str(tag.version) == "1.2.0"

    def test_empty_prefix_global_prerelease(self) -> None:
        tag = parse_tag("1.0.0-1", "abc", tag_prefix="")
        assert tag.scope is TagScope.GLOBAL
        assert str(tag.version) == "1.0.0-1"

    def test_prerelease_tag(self) -> None:
        assert str(parse_tag("v1.1.0-rc.2", "abc").version) == "1.1.0-rc.2"

    def test_custom_prefix(self) -> None:
        tag = parse_tag("release-1.0.0", "abc", tag_prefix="release-")
        assert tag.scope is TagScope.GLOBAL
        assert str(tag.version) == "1.0.0"

    def test_empty_prefix(self) -> None:
        assert str(parse_tag("1.0.0", "abc", tag_prefix="").version) == "1.0.0"

    def test_unparseable_has_no_version(self) -> None:
        tag = parse_tag("nightly", "abc")
        assert tag.version is None


class TestParseTags:
    def test_skips_invalid_and_records_diagnostic(self) -> None:
        diagnostics: list[Diagnostic] = []
        tags = parse_tags([("v1.0.0", "a"), ("latest", "b")], "v", diagnostics)
        assert [t.name for t in tags] == ["v1.0.0"]
        assert len(diagnostics) == 1
        assert diagnostics[0].kind is ErrorKind.INVALID_TAG_FORMAT
        assert "latest" in diagnostics[0].message

    def test_without_diagnostics_list(self) -> None:
        assert parse_tags([("junk", "a")]) == []


class TestCandidateTags:
    def test_global_and_own_project_tags(self) -> None:
        tags = parse_tags(
            [("v1.0.0", "a"), ("pkg-a-v1.2.0", "b"), ("pkg-b-v3.0.0", "c")]
        )
        names = [t.name for t in candidate_tags(tags, "pkg-a")]
        assert names == ["v1.0.0", "pkg-a-v1.2.0"]

    def test_project_names_compared_canonically(self) -> None:
        tags = parse_tags([("My_Lib-v1.0.0", "a")])
        assert len(candidate_tags(tags, "my-lib")) == 1


class TestSelectBaseTag:
    def _tag(self, name: str, version: str, scope: TagScope, project: str | None = None) -> Tag:
        return Tag(
            name=name, commit="x", version=parse_version(version), scope=scope, project=project
        )

    def test_highest_version_wins(self) -> None:
        tags = [
            self._tag("v2.0.0", "2.0.0", TagScope.GLOBAL),
            self._tag("a-v2.5.0", "2.5.0", TagScope.PROJECT, "a"),
        ]
        assert select_base_tag(tags).name == "a-v2.5.0"

    def test_global_wins_when_higher(self) -> None:
        tags = [
            self._tag("a-v2.5.0", "2.5.0", TagScope.PROJECT, "a"),
            self._tag("v3.0.0", "3.0.0", TagScope.GLOBAL),
        ]
        assert select_base_tag(tags).name == "v3.0.0"

    def test_project_tag_wins_tie(self) -> None:
        tags = [
            self._tag("v1.0.0", "1.0.0", TagScope.GLOBAL),
            self._tag("a-v1.0.0", "1.0.0", TagScope.PROJECT, "a"),
        ]
        assert select_base_tag(tags).name == "a-v1.0.0"
        assert select_base_tag(list(reversed(tags))).name == "a-v1.0.0"

    def test_tie_between_same_scope_uses_name(self) -> None:
        tags = [
            self._tag("v1.0.0+b", "1.0.0+b", TagScope.GLOBAL),
            self._tag("v1.0.0+a", "1.0.0+a", TagScope.GLOBAL),
        ]
        assert select_base_tag(tags).name == "v1.0.0+a"

    def test_prerelease_below_release(self) -> None:
        tags = [
            self._tag("v1.1.0-rc.1", "1.1.0-rc.1", TagScope.GLOBAL),
            self._tag("v1.0.0", "1.0.0", TagScope.GLOBAL),
        ]
        assert select_base_tag(tags).name == "v1.1.0-rc.1"

    def test_empty(self) -> None:
        assert select_base_tag([]) is None
