"""Paged iteration over the flat asset listing of a repository."""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Iterator

import paths
from backend import EPOCH, ProtocolError

logger = logging.getLogger(__name__)

MAX_PAGES = 100_000


@dataclass(frozen=True)
class Checksum:
    md5: str = ""
    sha1: str = ""


@dataclass(frozen=True)
class AssetDescriptor:
    """One asset as reported by the remote. `path` is relative to the repository."""
    id: str
    repository: str
    path: str
    checksum: Checksum = field(default_factory=Checksum)
    download_url: str = ""
    size: int | None = None
    last_modified: datetime | None = None
    content_type: str = ""


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO 8601 timestamp as sent by Nexus. Naive values are taken as UTC.

    Missing values give None; anything else that doesn't parse is a ProtocolError.
    """
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as e:
        raise ProtocolError(f"Unparseable timestamp {value!r}") from e
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _size(value) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Bad asset size {value!r}") from e


def _checksum(data) -> Checksum:
    if not isinstance(data, dict):
        return Checksum()
    return Checksum(md5=data.get("md5") or "", sha1=data.get("sha1") or "")


class PagedAssetSource:
    """Yields AssetDescriptors for a repository, following continuation tokens.

    The order of the returned assets is whatever the remote sends. A token
    seen twice in one pass, or more than `max_pages` pages, raises
    ProtocolError instead of looping forever.

    With `fetch_details`, assets whose listing item lacks a modification time
    or size are completed with an asset detail call and a HEAD request on
    the download URL.
    """

    def __init__(self, client, fetch_details: bool = True, max_pages: int = MAX_PAGES):
        self.client = client
        self.fetch_details = fetch_details
        self.max_pages = max_pages

    def pages(self, repository: str) -> Iterator[list]:
        token = None
        seen = set()
        for page in range(1, self.max_pages + 1):
            data = self.client.paged_query(repository, token)
            if not isinstance(data, dict) or not isinstance(data.get("items", []), list):
                raise ProtocolError(f"Malformed asset page {page} for {repository}")
            items = data.get("items") or []
            logger.debug("Page %d of %s: %d assets", page, repository, len(items))
            yield items

            token = data.get("continuationToken")
            if not token:
                return
            if token in seen:
                raise ProtocolError(f"Continuation token {token!r} repeated for {repository}")
            seen.add(token)
            logger.debug("Continuing with %s", token)
        raise ProtocolError(f"More than {self.max_pages} pages listing {repository}")

    def fetch_all(self, repository: str) -> Iterator[AssetDescriptor]:
        for items in self.pages(repository):
            for item in items:
                yield self._complete(self._descriptor(repository, item))

    def _descriptor(self, repository: str, item) -> AssetDescriptor:
        if not isinstance(item, dict) or not isinstance(item.get("path"), str):
            raise ProtocolError(f"Malformed asset in {repository}: {item!r}")
        try:
            paths.normalize(item["path"])
        except ValueError as e:
            raise ProtocolError(f"Bad asset path in {repository}: {e}") from e
        return AssetDescriptor(
            id=str(item.get("id") or ""),
            repository=repository,
            path=item["path"],
            checksum=_checksum(item.get("checksum")),
            download_url=item.get("downloadUrl") or "",
            size=_size(item.get("fileSize")),
            last_modified=parse_timestamp(item.get("lastModified")),
            content_type=item.get("contentType") or "",
        )

    def _complete(self, asset: AssetDescriptor) -> AssetDescriptor:
        if self.fetch_details and asset.last_modified is None and asset.id:
            detail = self.client.asset_detail(asset.id)
            if not isinstance(detail, dict):
                raise ProtocolError(f"Malformed detail for asset {asset.id}")
            checksum = _checksum(detail.get("checksum"))
            asset = replace(
                asset,
                last_modified=parse_timestamp(detail.get("lastModified")),
                checksum=checksum if checksum != Checksum() else asset.checksum,
                download_url=detail.get("downloadUrl") or asset.download_url,
                content_type=detail.get("contentType") or asset.content_type,
            )
        if self.fetch_details and asset.size is None and asset.download_url:
            asset = replace(asset, size=self.client.content_length(asset.download_url))
        return replace(
            asset,
            size=asset.size if asset.size is not None else 0,
            last_modified=asset.last_modified or EPOCH,
        )
