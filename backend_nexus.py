"""Nexus backend — browse Nexus repositories as a filesystem.

Structure:
    /
      repository/          — one directory per repository (when no root is set)
        some/dir/          — directories implied by asset paths
          artifact.jar     — assets

The asset listing of a repository is fetched once and kept as a TreeCache
until a write goes through, which drops it; the next read fetches it again.
"""

from __future__ import annotations

import logging
import mimetypes
import threading
from datetime import datetime, timezone

import paths
from asset_source import MAX_PAGES, PagedAssetSource
from backend import Backend, BackendError, NotFoundError, ResourceInfo
from tree import DirectoryNode, FileNode, TreeCache, TreeMaterializer, TreeNode

logger = logging.getLogger(__name__)


class _RepositoryState:
    """Cache slot of one repository: Empty (cache is None) or Materialized.

    Holding `lock` while cache is None and a pass runs is the Materializing
    state. A published cache is never mutated, only replaced or dropped.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.cache: TreeCache | None = None
        self.materializations = 0


class NexusBackend(Backend):
    """Expose Nexus repositories below `root` ("repository/optional/path")."""

    def __init__(self, client, root: str = "", fetch_details: bool = True,
                 max_pages: int = MAX_PAGES):
        self.client = client
        self.root = paths.normalize(root)
        self.materializer = TreeMaterializer(
            PagedAssetSource(client, fetch_details=fetch_details, max_pages=max_pages))
        self._states: dict[str, _RepositoryState] = {}
        self._states_lock = threading.Lock()

    @property
    def repository(self) -> str:
        return paths.split_repository(self.root)[0]

    def _state(self, repository: str) -> _RepositoryState:
        with self._states_lock:
            return self._states.setdefault(repository, _RepositoryState())

    def _existing_state(self, repository: str) -> _RepositoryState | None:
        with self._states_lock:
            return self._states.get(repository)

    def _drop_state(self, repository: str, state: _RepositoryState) -> None:
        with self._states_lock:
            if self._states.get(repository) is state:
                del self._states[repository]

    def _resolve(self, path: str) -> tuple[str, str]:
        """Return (repository, cache key) for a root-relative path."""
        try:
            key = paths.join(self.root, path)
        except ValueError as e:
            raise NotFoundError(str(e)) from e
        return paths.split_repository(key)[0], key

    def _tree(self, repository: str) -> TreeCache:
        while True:
            state = self._state(repository)
            with state.lock:
                if state.cache is not None:
                    return state.cache
                if self._existing_state(repository) is not state:
                    # Dropped by a failed pass while we waited for the lock.
                    continue
                logger.debug("Materializing %s", repository)
                state.materializations += 1
                try:
                    state.cache = self.materializer.materialize(repository)
                except Exception:
                    # Empty again; the slot is recreated by the next read.
                    self._drop_state(repository, state)
                    raise
                return state.cache

    def materializations(self, repository: str) -> int:
        """Materialization passes started since the last failed one."""
        state = self._existing_state(repository)
        return state.materializations if state is not None else 0

    def is_materialized(self, repository: str) -> bool:
        state = self._existing_state(repository)
        if state is None:
            return False
        with state.lock:
            return state.cache is not None

    def invalidate(self, repository: str | None = None) -> None:
        """Drop the cached tree of one repository, or of all of them."""
        if repository is None:
            with self._states_lock:
                states = list(self._states.items())
        else:
            state = self._existing_state(repository)
            states = [(repository, state)] if state is not None else []
        for name, state in states:
            with state.lock:
                if state.cache is not None:
                    logger.debug("Invalidating %s", name)
                state.cache = None

    def _render(self, node: TreeNode) -> ResourceInfo:
        rel = paths.relative_to(node.path, self.root)
        if isinstance(node, DirectoryNode):
            return ResourceInfo(path=rel, is_dir=True, mod_time=node.mod_time)
        ctype = (node.content_type
                 or mimetypes.guess_type(node.path)[0]
                 or "application/octet-stream")
        return ResourceInfo(
            path=rel,
            is_dir=False,
            size=node.size,
            content_type=ctype,
            mod_time=node.mod_time,
            md5=node.checksum.md5,
            sha1=node.checksum.sha1,
        )

    def _node(self, path: str) -> TreeNode | None:
        repository, key = self._resolve(path)
        return self._tree(repository).get(key)

    def _file_node(self, path: str) -> FileNode:
        node = self._node(path)
        if node is None:
            raise NotFoundError(f"Not found: {path}")
        if not isinstance(node, FileNode):
            raise NotFoundError(f"Not a file: {path}")
        return node

    def _directory(self, path: str) -> tuple[TreeCache, str]:
        repository, key = self._resolve(path)
        tree = self._tree(repository)
        node = tree.get(key)
        if node is None:
            raise NotFoundError(f"Not found: {path}")
        if not isinstance(node, DirectoryNode):
            raise NotFoundError(f"Not a directory: {path}")
        return tree, key

    def _sorted(self, nodes) -> list[ResourceInfo]:
        return sorted((self._render(n) for n in nodes), key=lambda e: e.path)

    def list(self, path: str = "", recursive: bool = False) -> list[ResourceInfo]:
        repository, _ = self._resolve(path)
        if not repository:
            if recursive:
                raise BackendError("Recursive listing across repositories is not supported")
            return [ResourceInfo(path=name, is_dir=True) for name in sorted(self.client.repositories())]

        tree, key = self._directory(path)
        if recursive:
            return self._sorted(n for n in tree.walk(key) if isinstance(n, FileNode))
        return self._sorted(tree.children(key))

    def walk(self, path: str = "") -> list[ResourceInfo]:
        repository, _ = self._resolve(path)
        if not repository:
            raise BackendError("Walking across repositories is not supported")
        tree, key = self._directory(path)
        return self._sorted(tree.walk(key))

    def info(self, path: str) -> ResourceInfo:
        repository, _ = self._resolve(path)
        if not repository:
            return ResourceInfo(path="", is_dir=True)
        node = self._node(path)
        if node is None:
            raise NotFoundError(f"Not found: {path}")
        return self._render(node)

    def get_object(self, path: str) -> ResourceInfo:
        return self._render(self._file_node(path))

    def get(self, path: str) -> bytes:
        node = self._file_node(path)
        if not node.download_url:
            raise BackendError(f"No download URL for {path}")
        return self.client.download(node.download_url)

    def put(self, stream, path: str, size: int, content_type: str) -> ResourceInfo:
        repository, key = self._resolve(path)
        _, asset_path = paths.split_repository(key)
        if not repository or not asset_path:
            raise BackendError(f"Cannot write to {path!r}: not inside a repository")

        self.client.upload(repository, asset_path, stream, size, content_type)
        self.invalidate(repository)
        return ResourceInfo(
            path=paths.relative_to(key, self.root),
            is_dir=False,
            size=max(size or 0, 0),
            content_type=content_type,
            mod_time=datetime.now(timezone.utc),
        )

    def mkdir(self, path: str) -> None:
        # Directories only exist through the assets below them.
        logger.debug("mkdir %s: nothing to do", path)

    def rmdir(self, path: str) -> None:
        logger.debug("rmdir %s: nothing to do", path)
