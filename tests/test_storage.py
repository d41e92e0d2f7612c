"""Tests for the JsonlStorage sink."""

import json
import os
import tempfile
import unittest

from featureservice.models import FeaturePage, WholeLayerPage
from featureservice.storage import JsonlStorage


def _page(index, ids):
    return FeaturePage(index=index, descriptor=WholeLayerPage(), payload={"features": [{"attributes": {"OBJECTID": i}} for i in ids]})


class TestJsonlStorage(unittest.TestCase):
    """Verify one line per feature is written."""

    def setUp(self):
        self._dir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._dir.name, "out.jsonl")

    def tearDown(self):
        self._dir.cleanup()

    def test_writes_every_feature(self):
        """All features of all pages land in the file, one per line."""
        storage = JsonlStorage(self.path)
        storage.write(_page(0, [1, 2, 3]))
        storage.write(_page(1, [4]))
        storage.close()

        with open(self.path, encoding="utf-8") as f:
            rows = [json.loads(line) for line in f]
        self.assertEqual([r["attributes"]["OBJECTID"] for r in rows], [1, 2, 3, 4])
        self.assertEqual(storage.count, 4)

    def test_page_without_features(self):
        """A page whose payload has no features writes nothing."""
        storage = JsonlStorage(self.path)
        storage.write(FeaturePage(index=0, descriptor=WholeLayerPage(), payload={}))
        storage.close()
        self.assertEqual(storage.count, 0)
        self.assertEqual(os.path.getsize(self.path), 0)


if __name__ == "__main__":
    unittest.main()
