"""Tests for url parsing and concurrency defaults."""

import unittest

from featureservice.utils import default_concurrency, parse_url, sanitize_layer


class TestParseUrl(unittest.TestCase):
    """Verify server, layer and hosted detection."""

    def test_feature_server_with_layer(self):
        """A hosted FeatureServer url with a layer index."""
        parsed = parse_url("https://services3.arcgis.com/abc/arcgis/rest/services/Roads/FeatureServer/2")
        self.assertEqual(parsed.server, "https://services3.arcgis.com/abc/arcgis/rest/services/Roads/FeatureServer")
        self.assertEqual(parsed.layer, 2)
        self.assertTrue(parsed.hosted)

    def test_map_server_without_layer(self):
        """A MapServer url without a layer; case-insensitive; not hosted."""
        parsed = parse_url("http://maps.indiana.edu/ArcGIS/rest/services/Infrastructure/Rail/MapServer")
        self.assertEqual(parsed.server, "http://maps.indiana.edu/ArcGIS/rest/services/Infrastructure/Rail/MapServer")
        self.assertIsNone(parsed.layer)
        self.assertFalse(parsed.hosted)

    def test_trailing_query_ignored(self):
        """Anything after the layer index is dropped."""
        parsed = parse_url("https://example.com/rest/services/X/FeatureServer/0/query?where=1=1")
        self.assertEqual(parsed.layer, 0)

    def test_unparseable_url(self):
        """Urls without a feature or map server raise ValueError."""
        with self.assertRaises(ValueError):
            parse_url("https://example.com/rest/services/X/ImageServer")


class TestSanitizeLayer(unittest.TestCase):
    """Verify layer index cleanup."""

    def test_variants(self):
        """Ints and digit strings are accepted; garbage is not."""
        self.assertEqual(sanitize_layer(3), 3)
        self.assertEqual(sanitize_layer("3"), 3)
        self.assertEqual(sanitize_layer("/12"), 12)
        self.assertIsNone(sanitize_layer("layer"))
        self.assertIsNone(sanitize_layer(None))


class TestDefaultConcurrency(unittest.TestCase):
    """Verify host and geometry based defaults."""

    def test_defaults(self):
        """Hosted servers get more parallelism; heavy geometries less."""
        self.assertEqual(default_concurrency(False), 4)
        self.assertEqual(default_concurrency(True), 16)
        self.assertEqual(default_concurrency(True, "esriGeometryPoint"), 16)
        self.assertEqual(default_concurrency(True, "esriGeometryPolygon"), 4)
        self.assertEqual(default_concurrency(False, "esriGeometryPolyline"), 1)


if __name__ == "__main__":
    unittest.main()
