"""Tests for path helpers."""

import unittest

import paths


class TestNormalize(unittest.TestCase):
    def test_strips_and_collapses(self):
        self.assertEqual(paths.normalize("/repo//a/b/"), "repo/a/b")

    def test_dot_segments(self):
        self.assertEqual(paths.normalize("./repo/./a"), "repo/a")

    def test_empty(self):
        self.assertEqual(paths.normalize(""), "")
        self.assertEqual(paths.normalize("///"), "")

    def test_join(self):
        self.assertEqual(paths.join("repo/", "/a", "b.txt"), "repo/a/b.txt")
        self.assertEqual(paths.join("", "a"), "a")

    def test_parent_segments_refused(self):
        for path in ["x/../y", "..", "/a/b/../../.."]:
            with self.assertRaises(ValueError):
                paths.normalize(path)
        with self.assertRaises(ValueError):
            paths.join("repo", "../other")


class TestSplitParent(unittest.TestCase):
    def test_nested(self):
        self.assertEqual(paths.split_parent("repo/a/b.txt"), ("repo/a", "b.txt"))

    def test_single_segment(self):
        self.assertEqual(paths.split_parent("repo"), ("", "repo"))

    def test_unnormalized(self):
        self.assertEqual(paths.split_parent("/repo//a/"), ("repo", "a"))


class TestAncestors(unittest.TestCase):
    def test_walks_to_first_segment(self):
        self.assertEqual(list(paths.ancestors("repo/a/b/c.txt")), ["repo/a/b", "repo/a", "repo"])

    def test_single_segment_has_none(self):
        self.assertEqual(list(paths.ancestors("repo")), [])

    def test_each_step_is_shorter(self):
        chain = list(paths.ancestors("r/1/2/3/4/5"))
        depths = [len(p.split("/")) for p in chain]
        self.assertEqual(depths, [5, 4, 3, 2, 1])

    def test_is_lazy(self):
        gen = paths.ancestors("repo/a/b")
        self.assertEqual(next(gen), "repo/a")


class TestRepository(unittest.TestCase):
    def test_split_repository(self):
        self.assertEqual(paths.split_repository("repo/a/b"), ("repo", "a/b"))
        self.assertEqual(paths.split_repository("/repo/"), ("repo", ""))
        self.assertEqual(paths.split_repository(""), ("", ""))

    def test_relative_to(self):
        self.assertEqual(paths.relative_to("repo/a/b", "repo"), "a/b")
        self.assertEqual(paths.relative_to("repo/a/b", ""), "repo/a/b")
        self.assertEqual(paths.relative_to("repo/a", "repo/a"), "")

    def test_relative_to_requires_whole_segments(self):
        with self.assertRaises(ValueError):
            paths.relative_to("repository/a", "repo")


if __name__ == "__main__":
    unittest.main()
