"""Tests for paged asset iteration."""

import unittest
from datetime import datetime, timezone

from asset_source import AssetDescriptor, Checksum, PagedAssetSource, parse_timestamp
from backend import EPOCH, ProtocolError, RemoteError


def item(path, **extra):
    data = {
        "id": "id-" + path,
        "path": path,
        "downloadUrl": "http://nexus/repository/r/" + path,
        "checksum": {"md5": "m-" + path, "sha1": "s-" + path},
        "lastModified": "2024-01-02T03:04:05.000+00:00",
        "fileSize": 3,
    }
    data.update(extra)
    return data


class ScriptedClient:
    """Returns the given pages in order and records every call."""

    def __init__(self, pages, detail=None, length=42):
        self.pages = list(pages)
        self.tokens = []
        self.details = []
        self.heads = []
        self.detail = detail or {}
        self.length = length

    def paged_query(self, repository, token=None):
        self.tokens.append(token)
        result = self.pages.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def asset_detail(self, asset_id):
        self.details.append(asset_id)
        return self.detail

    def content_length(self, url):
        self.heads.append(url)
        return self.length


class TestPaging(unittest.TestCase):
    def test_single_page(self):
        client = ScriptedClient([{"items": [item("a.txt")], "continuationToken": None}])
        assets = list(PagedAssetSource(client).fetch_all("r"))
        self.assertEqual([a.path for a in assets], ["a.txt"])
        self.assertEqual(client.tokens, [None])

    def test_follows_continuation_tokens(self):
        client = ScriptedClient([
            {"items": [item("a.txt"), item("b.txt")], "continuationToken": "t1"},
            {"items": [item("c/d.txt")], "continuationToken": "t2"},
            {"items": [], "continuationToken": None},
        ])
        assets = list(PagedAssetSource(client).fetch_all("r"))
        self.assertEqual([a.path for a in assets], ["a.txt", "b.txt", "c/d.txt"])
        self.assertEqual(client.tokens, [None, "t1", "t2"])

    def test_empty_token_ends(self):
        client = ScriptedClient([{"items": [], "continuationToken": ""}])
        self.assertEqual(list(PagedAssetSource(client).fetch_all("r")), [])

    def test_repeated_token_raises(self):
        client = ScriptedClient([
            {"items": [item("a.txt")], "continuationToken": "same"},
            {"items": [item("b.txt")], "continuationToken": "same"},
            {"items": [], "continuationToken": None},
        ])
        with self.assertRaises(ProtocolError):
            list(PagedAssetSource(client).fetch_all("r"))
        self.assertEqual(len(client.tokens), 2)

    def test_token_cycle_raises(self):
        client = ScriptedClient([
            {"items": [], "continuationToken": "x"},
            {"items": [], "continuationToken": "y"},
            {"items": [], "continuationToken": "x"},
        ])
        with self.assertRaises(ProtocolError):
            list(PagedAssetSource(client).fetch_all("r"))

    def test_page_bound(self):
        client = ScriptedClient([{"items": [], "continuationToken": f"t{i}"} for i in range(5)])
        with self.assertRaises(ProtocolError):
            list(PagedAssetSource(client, max_pages=3).fetch_all("r"))
        self.assertEqual(len(client.tokens), 3)

    def test_malformed_page(self):
        client = ScriptedClient([{"items": "nope"}])
        with self.assertRaises(ProtocolError):
            list(PagedAssetSource(client).fetch_all("r"))

    def test_malformed_item(self):
        client = ScriptedClient([{"items": [{"id": "x"}]}])
        with self.assertRaises(ProtocolError):
            list(PagedAssetSource(client).fetch_all("r"))

    def test_remote_error_propagates(self):
        error = RemoteError(500, "boom", "Server exploded")
        client = ScriptedClient([{"items": [item("a.txt")], "continuationToken": "t"}, error])
        with self.assertRaises(RemoteError) as cm:
            list(PagedAssetSource(client).fetch_all("r"))
        self.assertIs(cm.exception, error)


class TestDescriptors(unittest.TestCase):
    def test_listing_fields(self):
        client = ScriptedClient([{"items": [item("dir/a.txt")]}])
        [asset] = PagedAssetSource(client).fetch_all("r")
        self.assertEqual(asset, AssetDescriptor(
            id="id-dir/a.txt",
            repository="r",
            path="dir/a.txt",
            checksum=Checksum(md5="m-dir/a.txt", sha1="s-dir/a.txt"),
            download_url="http://nexus/repository/r/dir/a.txt",
            size=3,
            last_modified=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        ))
        self.assertEqual(client.details, [])
        self.assertEqual(client.heads, [])

    def test_completes_missing_metadata(self):
        bare = {"id": "abc", "path": "a.jar", "downloadUrl": "http://nexus/a.jar",
                "checksum": {"md5": "old"}}
        detail = {
            "lastModified": "2023-05-06T07:08:09Z",
            "checksum": {"md5": "md5x", "sha1": "sha1x"},
            "downloadUrl": "http://nexus/dl/a.jar",
            "contentType": "application/java-archive",
        }
        client = ScriptedClient([{"items": [bare]}], detail=detail, length=1234)
        [asset] = PagedAssetSource(client).fetch_all("r")
        self.assertEqual(client.details, ["abc"])
        self.assertEqual(client.heads, ["http://nexus/dl/a.jar"])
        self.assertEqual(asset.size, 1234)
        self.assertEqual(asset.checksum, Checksum("md5x", "sha1x"))
        self.assertEqual(asset.content_type, "application/java-archive")
        self.assertEqual(asset.last_modified, datetime(2023, 5, 6, 7, 8, 9, tzinfo=timezone.utc))

    def test_bad_size_raises(self):
        client = ScriptedClient([{"items": [item("a.txt", fileSize="big")]}])
        with self.assertRaises(ProtocolError):
            list(PagedAssetSource(client).fetch_all("r"))

    def test_bad_timestamp_raises(self):
        client = ScriptedClient([{"items": [item("a.txt", lastModified="last tuesday")]}])
        with self.assertRaises(ProtocolError):
            list(PagedAssetSource(client).fetch_all("r"))

    def test_malformed_detail_raises(self):
        bare = {"id": "abc", "path": "a.jar", "downloadUrl": "http://nexus/a.jar"}
        client = ScriptedClient([{"items": [bare]}], detail=["not", "a", "dict"])
        with self.assertRaises(ProtocolError):
            list(PagedAssetSource(client).fetch_all("r"))

    def test_parent_segment_in_path_raises(self):
        client = ScriptedClient([{"items": [item("x/../y.txt")]}])
        with self.assertRaises(ProtocolError):
            list(PagedAssetSource(client).fetch_all("r"))

    def test_without_details(self):
        bare = {"id": "abc", "path": "a.jar", "downloadUrl": "http://nexus/a.jar"}
        client = ScriptedClient([{"items": [bare]}])
        [asset] = PagedAssetSource(client, fetch_details=False).fetch_all("r")
        self.assertEqual(client.details, [])
        self.assertEqual(client.heads, [])
        self.assertEqual(asset.size, 0)
        self.assertEqual(asset.last_modified, EPOCH)


class TestParseTimestamp(unittest.TestCase):
    def test_offset(self):
        ts = parse_timestamp("2024-01-02T03:04:05.123+02:00")
        self.assertEqual(ts, datetime(2024, 1, 2, 1, 4, 5, 123000, tzinfo=timezone.utc))

    def test_naive_is_utc(self):
        self.assertEqual(parse_timestamp("2024-01-02T03:04:05").tzinfo, timezone.utc)

    def test_missing(self):
        self.assertIsNone(parse_timestamp(None))
        self.assertIsNone(parse_timestamp(""))

    def test_unparseable_raises(self):
        with self.assertRaises(ProtocolError):
            parse_timestamp("yesterday")


if __name__ == "__main__":
    unittest.main()
