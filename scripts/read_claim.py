"""Read the claim indexed for a wallet and schema, for debugging.

Usage: python scripts/read_claim.py <app_id> <address> <schema_id>
Prints the claim UID and the parsed record.
"""

from __future__ import annotations

import asyncio
import sys

from algosdk.v2client.algod import AlgodClient

from storegate.sdk.registry import AlgodAttestationRegistry


async def _read(app_id: int, address: str, schema_id: str) -> int:
    algod = AlgodClient(
        "aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa",
        "http://localhost:4001",
    )
    registry = AlgodAttestationRegistry(algod, app_id)
    claim_id = await registry.lookup_claim_id(address, schema_id)
    if claim_id is None:
        print("no claim indexed")
        return 1
    claim = await registry.fetch_claim(claim_id)
    if claim is None:
        print(f"uid={claim_id} record missing or unreadable")
        return 1
    print(f"uid={claim_id}")
    print(claim.model_dump_json(indent=2))
    return 0


def main() -> int:
    if len(sys.argv) < 4:
        print("Usage: read_claim.py <app_id> <address> <schema_id>", file=sys.stderr)
        return 2
    return asyncio.run(_read(int(sys.argv[1]), sys.argv[2], sys.argv[3]))


if __name__ == "__main__":
    raise SystemExit(main())
