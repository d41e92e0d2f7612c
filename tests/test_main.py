"""Tests for the command line entry point."""

import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

import main
from fakes import LAYER_URL, FakeLayerServer, FakeTransport, json_response


def _patched_transport(handler):
    return mock.patch(
        "featureservice.service.TransportFactory.create_transport",
        return_value=FakeTransport(handler),
    )


class TestMain(unittest.TestCase):
    """Verify plan and fetch runs end to end."""

    def test_plan_only(self):
        """--plan-only prints the plan without fetching pages."""
        out = io.StringIO()
        with _patched_transport(FakeLayerServer(range(1, 2501))), redirect_stdout(out):
            code = main.main([LAYER_URL, "--plan-only"])
        self.assertEqual(code, 0)
        self.assertIn("pages=3", out.getvalue())
        self.assertIn("oid=OBJECTID", out.getvalue())

    def test_fetch_writes_output(self):
        """A full run writes every feature to the output file."""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "roads.jsonl")
            out = io.StringIO()
            with _patched_transport(FakeLayerServer(range(1, 1501))), redirect_stdout(out):
                code = main.main([LAYER_URL, "--output", path, "--backoff", "0"])
            with open(path, encoding="utf-8") as f:
                ids = sorted(json.loads(line)["attributes"]["OBJECTID"] for line in f)
        self.assertEqual(code, 0)
        self.assertEqual(ids, list(range(1, 1501)))
        self.assertIn("DONE: pages=2 features=1500", out.getvalue())

    def test_abort_exit_code(self):
        """An aborted run exits with 2 and reports it."""
        server = FakeLayerServer(range(1, 1501))

        def handler(url, params):
            if params.get("outFields") == "*":
                return json_response({"error": {"code": 500}})
            return server(url, params)

        with tempfile.TemporaryDirectory() as tmp:
            err = io.StringIO()
            with _patched_transport(handler), redirect_stdout(io.StringIO()), redirect_stderr(err):
                code = main.main([LAYER_URL, "--output", os.path.join(tmp, "out.jsonl"), "--backoff", "0"])
        self.assertEqual(code, 2)
        self.assertIn("INCOMPLETE: Paging aborted", err.getvalue())

    def test_failed_setup_keeps_existing_output(self):
        """A metadata failure leaves an existing output file untouched."""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "roads.jsonl")
            with open(path, "w", encoding="utf-8") as f:
                f.write('{"keep": true}\n')
            with _patched_transport(FakeLayerServer([])), redirect_stderr(io.StringIO()):
                code = main.main([LAYER_URL, "--output", path])
            with open(path, encoding="utf-8") as f:
                content = f.read()
        self.assertEqual(code, 1)
        self.assertEqual(content, '{"keep": true}\n')

    def test_bad_url(self):
        """An unparseable url exits with 1."""
        err = io.StringIO()
        with redirect_stderr(err):
            code = main.main(["https://example.com/nothing"])
        self.assertEqual(code, 1)
        self.assertIn("ERROR:", err.getvalue())

    def test_empty_layer(self):
        """A layer reporting zero features exits with 1."""
        err = io.StringIO()
        with _patched_transport(FakeLayerServer([])), redirect_stderr(err):
            code = main.main([LAYER_URL, "--plan-only"])
        self.assertEqual(code, 1)
        self.assertIn("Service returned count of 0", err.getvalue())


if __name__ == "__main__":
    unittest.main()
