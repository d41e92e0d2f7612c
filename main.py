from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from featureservice.errors import FeatureServiceError, PagingAborted
from featureservice.models import ServiceOptions
from featureservice.service import FeatureService
from featureservice.storage import JsonlStorage


DEFAULT_OUTPUT_PATH = "features.jsonl"


def _build_options(args: argparse.Namespace) -> ServiceOptions:
    return ServiceOptions(
        layer=args.layer,
        max_page_size=args.max_page_size,
        max_concurrency=args.concurrency,
        backoff_unit=args.backoff,
        request_timeout=args.timeout,
        impersonate=args.impersonate,
    )


def run_plan(service: FeatureService) -> int:
    metadata = service.resolve_metadata()
    pages = service.plan()
    print(
        f"layer={metadata.name} oid={metadata.record_id_field} count={metadata.total_count} "
        f"legacy={metadata.is_legacy_server} pages={len(pages)}"
    )
    for page in pages:
        print(page)
    return 0


def run_fetch(service: FeatureService, output_path: str) -> int:
    # metadata and planning errors surface here, before the output file is touched
    pages = service.fetch_all()
    storage = JsonlStorage(output_path)
    ok = 0
    aborted: Optional[PagingAborted] = None
    try:
        for page in pages:
            storage.write(page)
            ok += 1
            print(f"page={page.index} features={len(page.features)}")
    except PagingAborted as exc:
        aborted = exc
    finally:
        storage.close()

    stats = service.metrics.snapshot()
    print(
        f"\nDONE: pages={ok} features={storage.count} attempts={stats.total_attempts} "
        f"retries={stats.retry_count} failures={stats.failure_count} avg_latency_ms={stats.avg_latency_ms:.0f}"
    )
    if aborted is not None:
        print(f"INCOMPLETE: {aborted}", file=sys.stderr)
        return 2
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Download every feature of an ArcGIS feature layer")
    parser.add_argument("url", help="FeatureServer or MapServer url, optionally ending in a layer index")

    parser.add_argument("--layer", type=int, default=None, help="Layer index (overrides the one in the url)")
    parser.add_argument("--max-page-size", type=int, default=5000, help="Upper bound on records per page")
    parser.add_argument("--concurrency", type=int, default=None, help="Maximum concurrent page requests")
    parser.add_argument("--backoff", type=float, default=1.0, help="Retry delay unit in seconds")
    parser.add_argument("--timeout", type=float, default=90.0, help="Per-request timeout in seconds")
    parser.add_argument("--impersonate", default=None, help="Use curl_cffi with this browser fingerprint (e.g. chrome120)")

    parser.add_argument("--output", default=DEFAULT_OUTPUT_PATH, help="Output JSONL file path")
    parser.add_argument("--plan-only", action="store_true", help="Print the page plan without fetching")
    parser.add_argument("--log-level", default="INFO", help="Logging level")

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")

    try:
        service = FeatureService(args.url, _build_options(args))
        if args.plan_only:
            return run_plan(service)
        return run_fetch(service, args.output)
    except (ValueError, FeatureServiceError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
