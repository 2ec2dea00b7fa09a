"""Git history access.

The resolver only talks to git through the GitHistory protocol, so it can
run against a real repository (GitCli) or an in-memory fake in tests.
CachingGitHistory wraps any implementation with a thread-safe read-through
cache that lives for one multi-project run.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from typing import Protocol, TypeVar, runtime_checkable

from .errors import RepositoryNotFoundError
from .models import CommitInfo
from .shell import git, git_ok

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SUBMODULE_MODE = "160000"


@runtime_checkable
class GitHistory(Protocol):
    """Read-only queries the resolver needs from a repository.

    A `since` of None means "from the beginning of history".
    """

    def current_branch(self) -> str: ...

    def list_tags(self) -> list[tuple[str, str]]:
        """Return (tag name, target commit sha) pairs."""
        ...

    def is_ancestor(self, candidate: str, tip: str = "HEAD") -> bool: ...

    def changed_files(self, since: str | None) -> list[str]:
        """Paths (relative to the repo root, "/" separated) changed since `since`."""
        ...

    def commits(self, since: str | None, paths: Sequence[str] = ()) -> list[CommitInfo]:
        """Commits reachable from HEAD but not from `since`, newest first.

        When paths are given only commits touching them are returned.
        """
        ...

    def commit_height(self, since: str | None) -> int: ...

    def is_shallow(self) -> bool: ...

    def changed_submodules(self, since: str | None) -> list[str]:
        """Submodule paths whose recorded commit changed since `since`."""
        ...


class GitCli:
    """GitHistory backed by the git command line.

    Stateless apart from the repository root, so one instance can serve
    concurrent readers.

    Args:
        root: Repository working directory.
        branch: Branch name to report instead of asking git (useful on CI,
                where HEAD is usually detached).
    """

    def __init__(self, root: str, branch: str | None = None) -> None:
        self.root = root
        self._branch = branch

    @classmethod
    def discover(cls, path: str, branch: str | None = None) -> GitCli:
        """Find the repository containing `path`.

        Raises:
            RepositoryNotFoundError: If `path` is not inside a git work tree.
        """
        if not git_ok("rev-parse", "--is-inside-work-tree", cwd=path):
            raise RepositoryNotFoundError(f"No git repository found at {path}")
        root = git("rev-parse", "--show-toplevel", cwd=path)
        return cls(root, branch=branch)

    def _git(self, *args: str, check: bool = True) -> str:
        return git(*args, cwd=self.root, check=check)

    def current_branch(self) -> str:
        if self._branch:
            return self._branch
        # symbolic-ref also works on an unborn branch; fails when detached.
        return self._git("symbolic-ref", "--short", "-q", "HEAD", check=False) or "HEAD"

    def list_tags(self) -> list[tuple[str, str]]:
        out = self._git(
            "for-each-ref",
            "refs/tags",
            "--format=%(refname:short)%09%(objectname)%09%(*objectname)",
            check=False,
        )
        tags: list[tuple[str, str]] = []
        for line in out.splitlines():
            name, obj, peeled = (line.split("\t") + ["", ""])[:3]
            # Annotated tags point at a tag object; *objectname is the commit.
            tags.append((name, peeled or obj))
        return tags

    def is_ancestor(self, candidate: str, tip: str = "HEAD") -> bool:
        return git_ok("merge-base", "--is-ancestor", candidate, tip, cwd=self.root)

    def changed_files(self, since: str | None) -> list[str]:
        if since is None:
            out = self._git("ls-files", check=False)
        else:
            out = self._git("diff", "--name-only", since, "HEAD", check=False)
        return out.splitlines()

    def commits(self, since: str | None, paths: Sequence[str] = ()) -> list[CommitInfo]:
        rev = f"{since}..HEAD" if since else "HEAD"
        args = ["log", "--format=%H%x1f%B%x1e", rev]
        if paths:
            args += ["--", *paths]
        out = self._git(*args, check=False)
        result: list[CommitInfo] = []
        for record in out.split("\x1e"):
            record = record.strip()
            if not record:
                continue
            sha, _, message = record.partition("\x1f")
            result.append(CommitInfo(sha=sha, message=message.strip()))
        return result

    def commit_height(self, since: str | None) -> int:
        rev = f"{since}..HEAD" if since else "HEAD"
        out = self._git("rev-list", "--count", rev, check=False)
        return int(out) if out.isdigit() else 0

    def is_shallow(self) -> bool:
        return self._git("rev-parse", "--is-shallow-repository", check=False) == "true"

    def changed_submodules(self, since: str | None) -> list[str]:
        paths: list[str] = []
        if since is None:
            # "<mode> <sha> <stage>\t<path>"
            for line in self._git("ls-files", "-s", check=False).splitlines():
                meta, _, path = line.partition("\t")
                if meta.split(" ")[0] == _SUBMODULE_MODE:
                    paths.append(path)
            return paths
        # ":<old mode> <new mode> <old sha> <new sha> <status>\t<path>"
        for line in self._git("diff", "--raw", since, "HEAD", check=False).splitlines():
            meta, _, path = line.partition("\t")
            modes = meta.lstrip(":").split(" ")[:2]
            if _SUBMODULE_MODE in modes:
                paths.append(path)
        return paths


class CachingGitHistory:
    """Thread-safe read-through cache around another GitHistory.

    Every query is memoized by method name and arguments for the lifetime
    of this object, so resolving many projects walks history once.
    Results are computed outside the lock; concurrent misses on the same
    key may both compute, and the first stored value wins.
    """

    def __init__(self, inner: GitHistory) -> None:
        self.inner = inner
        self._lock = threading.Lock()
        self._cache: dict[tuple, object] = {}

    def _memo(self, key: tuple, compute: Callable[[], T]) -> T:
        with self._lock:
            if key in self._cache:
                return self._cache[key]  # type: ignore[return-value]
        value = compute()
        with self._lock:
            return self._cache.setdefault(key, value)  # type: ignore[return-value]

    def current_branch(self) -> str:
        return self._memo(("current_branch",), self.inner.current_branch)

    def list_tags(self) -> list[tuple[str, str]]:
        return list(self._memo(("list_tags",), self.inner.list_tags))

    def is_ancestor(self, candidate: str, tip: str = "HEAD") -> bool:
        return self._memo(
            ("is_ancestor", candidate, tip),
            lambda: self.inner.is_ancestor(candidate, tip),
        )

    def changed_files(self, since: str | None) -> list[str]:
        return list(
            self._memo(("changed_files", since), lambda: self.inner.changed_files(since))
        )

    def commits(self, since: str | None, paths: Sequence[str] = ()) -> list[CommitInfo]:
        key = ("commits", since, tuple(paths))
        return list(self._memo(key, lambda: self.inner.commits(since, paths)))

    def commit_height(self, since: str | None) -> int:
        return self._memo(("commit_height", since), lambda: self.inner.commit_height(since))

    def is_shallow(self) -> bool:
        return self._memo(("is_shallow",), self.inner.is_shallow)

    def changed_submodules(self, since: str | None) -> list[str]:
        return list(
            self._memo(
                ("changed_submodules", since),
                lambda: self.inner.changed_submodules(since),
            )
        )
