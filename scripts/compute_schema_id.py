"""Compute canonical schema ID (sha256 of canonical JSON).

Usage: python scripts/compute_schema_id.py [path/to/schema.json]
Without an argument, prints the default region and trading schema IDs.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

from storegate.sdk.hashing import REGION_SCHEMA, TRADING_SCHEMA, generate_schema_id


def main() -> int:
    if len(sys.argv) < 2:
        print(f"region  {generate_schema_id(REGION_SCHEMA)}")
        print(f"trading {generate_schema_id(TRADING_SCHEMA)}")
        return 0
    path = Path(sys.argv[1])
    try:
        data = json.loads(path.read_text())
        print(generate_schema_id(data))
        return 0
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
