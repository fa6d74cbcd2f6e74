"""In-memory directory tree synthesized from a flat asset listing.

Nexus only knows about assets; directories are implied by their paths. The
materializer walks every asset's path up to the repository root, creating
the directories it meets and linking each one to the child it came from.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator

import paths
from asset_source import AssetDescriptor, Checksum
from backend import EPOCH, NotFoundError, ProtocolError

logger = logging.getLogger(__name__)


@dataclass
class DirectoryNode:
    path: str
    # Insertion-ordered set of child keys.
    children: dict[str, None] = field(default_factory=dict)
    mod_time: datetime = EPOCH

    is_dir = True

    def add_child(self, key: str) -> bool:
        """Register a child key. Returns False if it was already known."""
        if key in self.children:
            return False
        self.children[key] = None
        return True


@dataclass
class FileNode:
    path: str
    checksum: Checksum
    size: int
    mod_time: datetime
    download_url: str = ""
    content_type: str = ""

    is_dir = False


TreeNode = DirectoryNode | FileNode


def _version(node: FileNode) -> tuple:
    """Ordering of two assets at the same path; the greater one is kept."""
    return (node.mod_time, node.size, node.checksum.sha1, node.checksum.md5,
            node.download_url, node.content_type)


class TreeCache:
    """Mapping of cache key -> node for a single repository."""

    def __init__(self, repository: str):
        self.repository = paths.normalize(repository)
        self._nodes: dict[str, TreeNode] = {}

    def __len__(self):
        return len(self._nodes)

    def __contains__(self, key):
        return paths.normalize(key) in self._nodes

    def __iter__(self):
        return iter(self._nodes)

    def __eq__(self, other):
        if not isinstance(other, TreeCache):
            return NotImplemented
        return self.repository == other.repository and self._nodes == other._nodes

    @property
    def root(self) -> DirectoryNode:
        return self._nodes[self.repository]

    def get(self, key: str) -> TreeNode | None:
        return self._nodes.get(paths.normalize(key))

    def new_directory(self, key: str) -> DirectoryNode:
        node = DirectoryNode(key)
        self._nodes[key] = node
        return node

    def set_file(self, node: FileNode) -> None:
        self._nodes[node.path] = node

    def children(self, key: str) -> list[TreeNode]:
        """Immediate children of a directory."""
        node = self.get(key)
        if not isinstance(node, DirectoryNode):
            raise NotFoundError(f"Not a directory: {key}")
        return [self._nodes[k] for k in node.children]

    def walk(self, key: str) -> Iterator[TreeNode]:
        """Every node below a directory, each directory before its own children."""
        for child in self.children(key):
            yield child
            if isinstance(child, DirectoryNode):
                yield from self.walk(child.path)


class TreeMaterializer:
    """Builds a TreeCache from everything a PagedAssetSource yields."""

    def __init__(self, source):
        self.source = source

    def materialize(self, repository: str) -> TreeCache:
        cache = TreeCache(repository)
        root = cache.new_directory(cache.repository)
        count = 0
        for asset in self.source.fetch_all(cache.repository):
            if self.add(cache, asset):
                count += 1
        if not root.children:
            root.mod_time = datetime.now(timezone.utc)
        logger.info("Materialized %s: %d assets, %d entries", cache.repository, count, len(cache))
        return cache

    @staticmethod
    def add(cache: TreeCache, asset: AssetDescriptor) -> bool:
        """Add one asset and link its directory chain. Returns False if skipped."""
        key = paths.join(cache.repository, asset.path)
        if key == cache.repository:
            logger.warning("Skipping asset %s with empty path", asset.id)
            return False
        existing = cache.get(key)
        if isinstance(existing, DirectoryNode):
            raise ProtocolError(f"Asset {key} collides with a directory")

        mod_time = asset.last_modified or EPOCH
        node = FileNode(
            path=key,
            checksum=asset.checksum,
            size=asset.size or 0,
            mod_time=mod_time,
            download_url=asset.download_url,
            content_type=asset.content_type,
        )
        if existing is not None and _version(existing) >= _version(node):
            logger.debug("Keeping newer copy of duplicate asset %s", key)
            return False
        cache.set_file(node)

        child = key
        for parent_key in paths.ancestors(key):
            parent = cache.get(parent_key)
            existed = parent is not None
            if not existed:
                parent = cache.new_directory(parent_key)
            elif not isinstance(parent, DirectoryNode):
                raise ProtocolError(f"Asset {parent_key} is also a parent of {key}")
            parent.add_child(child)

            # An existing directory already has its chain up to the root;
            # keep walking only while its timestamp has to move forward.
            if existed and parent.mod_time >= mod_time:
                break
            parent.mod_time = max(parent.mod_time, mod_time)
            child = parent_key
        return True
