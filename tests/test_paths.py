import unittest
from pathlib import PurePosixPath

from s3_filesystem.paths import get_key, listing_prefix, normalize_prefix, normalize_root, strip_listing_prefix


class PathsTests(unittest.TestCase):
    def test_normalize_prefix_strips_one_slash_each_side(self):
        self.assertEqual("warehouse", normalize_prefix("/warehouse/"))
        self.assertEqual("a/b", normalize_prefix("a/b"))
        self.assertEqual("", normalize_prefix("/"))
        self.assertEqual("/a/", normalize_prefix("//a//"))

    def test_normalize_root_treats_root_as_directory(self):
        self.assertEqual("/data/", normalize_root("/data"))
        self.assertEqual("/data/", normalize_root("/data/"))
        self.assertEqual("", normalize_root(""))

    def test_get_key_strips_root_length(self):
        root = normalize_root("/data")
        for suffix in ("t1/0001", "x", "deep/nested/file.parquet"):
            self.assertEqual(f"warehouse/{suffix}", get_key("warehouse", root, root + suffix))

    def test_get_key_treats_other_paths_as_relative(self):
        root = normalize_root("/data")
        self.assertEqual("warehouse/relative/f", get_key("warehouse", root, "relative/f"))
        self.assertEqual("warehouse//elsewhere/f", get_key("warehouse", root, "/elsewhere/f"))
        self.assertEqual("warehouse//database", get_key("warehouse", root, "/database"))

    def test_get_key_maps_root_itself_to_prefix(self):
        root = normalize_root("/data")
        self.assertEqual("warehouse/", get_key("warehouse", root, "/data"))
        self.assertEqual("warehouse/", get_key("warehouse", root, "/data/"))

    def test_get_key_accepts_path_objects(self):
        self.assertEqual("p/t1/0001", get_key("p", "/data/", PurePosixPath("/data/t1/0001")))

    def test_get_key_performs_no_slash_normalization(self):
        self.assertEqual("p/a//b", get_key("p", "/data/", "/data/a//b"))

    def test_listing_prefix(self):
        self.assertEqual("p/dir/", listing_prefix("p/dir"))
        self.assertEqual("p/dir/", listing_prefix("p/dir/"))
        self.assertEqual("", listing_prefix(""))

    def test_strip_listing_prefix(self):
        self.assertEqual("a/b", strip_listing_prefix("p/dir/a/b", "p/dir/"))
        self.assertEqual("other/a", strip_listing_prefix("other/a", "p/dir/"))


if __name__ == "__main__":
    unittest.main()
