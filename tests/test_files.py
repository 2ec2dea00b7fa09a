"""Tests for monover.files."""

from __future__ import annotations

import pytest

from monover.config import ChangeDetection
from monover.files import FileChangeClassifier, matches
from monover.versions import BumpType


class TestMatches:
    @pytest.mark.parametrize(
        ("path", "pattern"),
        [
            ("docs/guide.md", "*.md"),
            ("README.md", "*.md"),
            ("src/api/v1/routes.py", "src/**/*.py"),
            ("src/app.py", "src/**/*.py"),
            ("src/app.py", "src/*.py"),
            ("pkg/a/test_x.py", "**/test_?.py"),
            ("SRC/App.PY", "src/*.py"),
            ("src\\win\\path.py", "src/**"),
            ("anything/at/all", "**"),
        ],
    )
    def test_matching(self, path: str, pattern: str) -> None:
        assert matches(path, pattern)

    @pytest.mark.parametrize(
        ("path", "pattern"),
        [
            ("src/api/v1/routes.py", "src/*.py"),
            ("pkg/a/test_xy.py", "**/test_?.py"),
            ("docs/guide.md", "docs/*.txt"),
            ("", "*.md"),
            ("a.md", ""),
        ],
    )
    def test_not_matching(self, path: str, pattern: str) -> None:
        assert not matches(path, pattern)


class TestFileChangeClassifier:
    @pytest.fixture
    def config(self) -> ChangeDetection:
        return ChangeDetection(
            ignore_patterns=["**/*.md", "docs/**"],
            major_patterns=["**/public_api/**"],
            minor_patterns=["**/features/**"],
            patch_patterns=["**/*.py"],
        )

    def test_no_files(self) -> None:
        result = FileChangeClassifier().classify([])
        assert result.bump is BumpType.NONE
        assert result.should_ignore

    def test_buckets_in_order(self, config: ChangeDetection) -> None:
        result = FileChangeClassifier(config).classify(
            [
                "README.md",
                "pkg/public_api/api.py",
                "pkg/features/new.py",
                "pkg/util.py",
                "pkg/data.json",
            ]
        )
        assert result.ignored_files == ["README.md"]
        assert result.major_files == ["pkg/public_api/api.py"]
        assert result.minor_files == ["pkg/features/new.py"]
        assert result.patch_files == ["pkg/util.py"]
        assert result.unclassified_files == ["pkg/data.json"]
        assert result.total_files == 5
        assert result.bump is BumpType.MAJOR

    def test_ignored_file_never_counts(self, config: ChangeDetection) -> None:
        # Matches both ignore and major; ignore is checked first.
        result = FileChangeClassifier(config).classify(["docs/public_api/x.py"])
        assert result.should_ignore
        assert result.bump is BumpType.NONE

    def test_all_ignored(self, config: ChangeDetection) -> None:
        result = FileChangeClassifier(config).classify(["a.md", "docs/x.txt"])
        assert result.should_ignore
        assert result.bump is BumpType.NONE
        assert result.reason == "All changes are in ignored files"

    def test_minor(self, config: ChangeDetection) -> None:
        result = FileChangeClassifier(config).classify(["x/features/f.py", "x/y.py"])
        assert result.bump is BumpType.MINOR

    def test_unclassified_defaults_to_patch(self) -> None:
        result = FileChangeClassifier().classify(["pkg/data.json"])
        assert result.bump is BumpType.PATCH
        assert not result.should_ignore

    def test_unclassified_uses_minimum_bump(self) -> None:
        config = ChangeDetection(minimum_bump_type=BumpType.MINOR)
        result = FileChangeClassifier(config).classify(["pkg/data.json"])
        assert result.bump is BumpType.MINOR

    def test_minimum_bump_raises_result(self, config: ChangeDetection) -> None:
        config = config.model_copy(update={"minimum_bump_type": BumpType.MINOR})
        result = FileChangeClassifier(config).classify(["pkg/util.py"])
        assert result.bump is BumpType.MINOR
        assert "minimum bump type enforced" in result.reason

    def test_source_only_mode_unclassified_ignored(self) -> None:
        config = ChangeDetection(source_only_mode=True, patch_patterns=["src/**"])
        result = FileChangeClassifier(config).classify(["tests/test_x.py"])
        assert result.should_ignore
        assert result.bump is BumpType.NONE

    def test_source_only_mode_source_change(self) -> None:
        config = ChangeDetection(source_only_mode=True, patch_patterns=["src/**"])
        result = FileChangeClassifier(config).classify(["src/a.py", "tests/test_a.py"])
        assert result.bump is BumpType.PATCH

    def test_disabled_any_file_is_patch(self, config: ChangeDetection) -> None:
        config = config.model_copy(update={"enabled": False})
        result = FileChangeClassifier(config).classify(["README.md"])
        assert result.bump is BumpType.PATCH
        assert not result.should_ignore
