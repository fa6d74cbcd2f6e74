"""Pure helpers for slash-separated remote paths.

Cache keys are repository-qualified ("repo/dir/file.txt"), with no leading or
trailing slash and no empty or "." segments. ".." segments are refused with
ValueError: a remote path can't step out of the directory it names.
"""

from typing import Iterator


def _segments(path: str) -> list[str]:
    parts = [p for p in path.split("/") if p and p != "."]
    if ".." in parts:
        raise ValueError(f"Parent segment in path {path!r}")
    return parts


def normalize(path: str) -> str:
    """Normalize a path: strip outer slashes, collapse doubles, drop '.' segments."""
    return "/".join(_segments(path))


def join(*parts: str) -> str:
    """Join path fragments and normalize the result."""
    return normalize("/".join(parts))


def split_parent(path: str) -> tuple[str, str]:
    """Return (parent, basename). The parent of a single segment is ""."""
    path = normalize(path)
    if "/" not in path:
        return "", path
    parent, name = path.rsplit("/", 1)
    return parent, name


def ancestors(path: str) -> Iterator[str]:
    """Yield the ancestors of path, from the immediate parent up to the first segment.

    The empty path is not yielded: for a cache key the last ancestor is the
    repository root. Each step drops exactly one segment, so the walk ends
    after depth - 1 items.
    """
    parts = _segments(path)
    for depth in range(len(parts) - 1, 0, -1):
        yield "/".join(parts[:depth])


def split_repository(path: str) -> tuple[str, str]:
    """Split "repo/some/path" into ("repo", "some/path")."""
    path = normalize(path)
    if "/" not in path:
        return path, ""
    repository, rest = path.split("/", 1)
    return repository, rest


def relative_to(key: str, root: str) -> str:
    """Rebase a key against root. Raises ValueError if key is outside root."""
    key, root = normalize(key), normalize(root)
    if not root:
        return key
    if key == root:
        return ""
    if key.startswith(root + "/"):
        return key[len(root) + 1:]
    raise ValueError(f"{key!r} is not below {root!r}")
