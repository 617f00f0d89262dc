"""Fetch and print one order (by tracking id) or an order history (by email)."""

import argparse
import json

import httpx


def main() -> None:
    """CLI entrypoint for support staff lookups."""

    parser = argparse.ArgumentParser(description="Look up storefront orders.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--tracking-id")
    group.add_argument("--email")
    args = parser.parse_args()

    if args.tracking_id:
        resp = httpx.get(f"{args.base_url}/orders/{args.tracking_id}", timeout=10.0)
    else:
        resp = httpx.get(f"{args.base_url}/orders", params={"email": args.email}, timeout=10.0)
    print(json.dumps(resp.json(), indent=2))
    if resp.status_code >= 400:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
