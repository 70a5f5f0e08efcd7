#!/usr/bin/env python3
import argparse
import json
import time
import urllib.error
import urllib.request
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from statistics import mean
from typing import Any


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _load_queries(args: argparse.Namespace) -> list[str]:
    queries = list(args.query or [])
    if args.file:
        with Path(args.file).open("r", encoding="utf-8") as f:
            queries.extend(line.strip() for line in f if line.strip() and not line.startswith("#"))
    return queries


def _post_json(url: str, payload: dict[str, Any], timeout_seconds: float) -> tuple[int, dict[str, Any], float]:
    body = json.dumps(payload).encode("utf-8")
    request = urllib.request.Request(
        url=url,
        data=body,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    start = time.perf_counter()
    try:
        with urllib.request.urlopen(request, timeout=timeout_seconds) as response:
            raw = response.read().decode("utf-8")
            latency_ms = (time.perf_counter() - start) * 1000
            return response.status, json.loads(raw), latency_ms
    except urllib.error.HTTPError as exc:
        raw = exc.read().decode("utf-8", errors="replace")
        latency_ms = (time.perf_counter() - start) * 1000
        try:
            return exc.code, json.loads(raw), latency_ms
        except json.JSONDecodeError:
            return exc.code, {"error": {"message": raw}}, latency_ms
    except (urllib.error.URLError, TimeoutError) as exc:
        latency_ms = (time.perf_counter() - start) * 1000
        return 0, {"error": {"message": str(exc), "type": exc.__class__.__name__}}, latency_ms


def probe(args: argparse.Namespace) -> int:
    queries = _load_queries(args)
    if not queries:
        print("[probe] no queries given, use --query or --file")
        return 2

    endpoint = f"{args.base_url.rstrip('/')}{args.search_path}"
    records: list[dict[str, Any]] = []
    for pass_number in range(1, args.passes + 1):
        for query in queries:
            status_code, body, latency_ms = _post_json(endpoint, {"query": query}, args.timeout_seconds)
            record = {
                "pass": pass_number,
                "query": query,
                "http_status": status_code,
                "status": body.get("status"),
                "error_kind": body.get("error_kind") or (body.get("error") or {}).get("code"),
                "result_count": len(body.get("results") or []),
                "cache_hit": bool((body.get("meta") or {}).get("cache_hit")),
                "latency_ms": round(latency_ms, 2),
            }
            records.append(record)
            print(
                f"[pass {pass_number}] {query!r}: status={record['status']} results={record['result_count']} "
                f"cache_hit={record['cache_hit']} latency_ms={latency_ms:.1f}"
            )

    summary = []
    for pass_number in range(1, args.passes + 1):
        rows = [r for r in records if r["pass"] == pass_number]
        summary.append(
            {
                "pass": pass_number,
                "statuses": dict(Counter(str(r["status"]) for r in rows)),
                "cache_hits": sum(1 for r in rows if r["cache_hit"]),
                "mean_latency_ms": round(mean(r["latency_ms"] for r in rows), 2),
            }
        )
    print(json.dumps(summary, indent=2))

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", encoding="utf-8") as f:
            json.dump({"created_at": _utc_now(), "records": records, "summary": summary}, f, indent=2)
        print(f"[probe] wrote {args.out}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay search queries against a running API and report cache behaviour.")
    parser.add_argument("--query", action="append", help="Query text, repeatable.")
    parser.add_argument("--file", help="File with one query per line.")
    parser.add_argument("--passes", type=int, default=2, help="How many times to replay the whole list.")
    parser.add_argument("--base-url", default="http://localhost:8000", help="API base URL.")
    parser.add_argument("--search-path", default="/v1/search", help="Search endpoint path.")
    parser.add_argument("--timeout-seconds", type=float, default=30.0)
    parser.add_argument("--out", help="Optional path to write the raw records as JSON.")
    parser.set_defaults(func=probe)
    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
