"""Write site settings rows (store name, payment details, tracking prefix).

Example:
    python scripts/seed_site_settings.py --set store_name="Acme Watches" --set tracking_prefix=MB
"""

import argparse
import json
from dataclasses import asdict
from pathlib import Path

from storefront.common.db import SessionLocal
from storefront.common.site_settings import SiteSettingsProvider


def parse_pairs(pairs: list[str]) -> dict[str, str]:
    values = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise SystemExit(f"Expected key=value, got {pair!r}")
        values[key.strip()] = value.strip()
    return values


def main() -> None:
    """Parse CLI args and upsert each setting."""

    parser = argparse.ArgumentParser(description="Seed storefront site settings.")
    parser.add_argument("--set", dest="pairs", action="append", default=[], help="key=value")
    parser.add_argument("--file", dest="json_file", default=None, help="JSON object of settings")
    args = parser.parse_args()

    values = parse_pairs(args.pairs)
    if args.json_file:
        values.update(json.loads(Path(args.json_file).read_text()))
    if not values:
        raise SystemExit("Nothing to write; pass --set or --file")

    provider = SiteSettingsProvider(SessionLocal)
    for key, value in values.items():
        provider.put(key, str(value))
    print(json.dumps(asdict(provider.snapshot()), indent=2))


if __name__ == "__main__":
    main()
