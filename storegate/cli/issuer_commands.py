"""Issuer key CLI commands.

Generates did:key issuer identities and encodes signed claim records, for
seeding a registry on LocalNet or configuring STOREGATE_TRUSTED_ISSUERS.
"""

from __future__ import annotations

import hashlib
import json
import time
from pathlib import Path

import typer
from nacl.signing import SigningKey
from rich.console import Console

from storegate.sdk.did import generate_did_key, generate_ed25519_keypair
from storegate.sdk.hashing import canonical_json, sign_claim
from storegate.sdk.registry import encode_claim_record, index_box_name

app = typer.Typer(name="issuer", help="Claim issuer key commands")
console = Console()


@app.command("keygen")
def keygen_command(
    output: Path | None = typer.Option(None, "--output", "-o", help="Output file for private key"),
    seed: str | None = typer.Option(None, "--seed", help="Deterministic seed for key generation"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing key file")
) -> None:
    """Generate an Ed25519 issuer key and its did:key."""
    if output and output.exists() and not force:
        console.print(f"[red]Error: Key file {output} already exists. Use --force to overwrite.[/red]")
        raise typer.Exit(1)

    if seed:
        signing_key = SigningKey(hashlib.sha256(seed.encode()).digest())
        did_key = generate_did_key(signing_key)
    else:
        signing_key, did_key = generate_ed25519_keypair()

    # plain print keeps the did:key free of rich markup
    print(did_key)
    if output:
        key_data = {"private_key": bytes(signing_key).hex(), "did": did_key}
        output.write_text(json.dumps(key_data, indent=2))
        console.print(f"[green]Private key saved to {output}[/green]")


@app.command("encode-claim")
def encode_claim_command(
    schema_id: str = typer.Argument(..., help="Schema ID the claim is issued under"),
    subject: str = typer.Argument(..., help="Subject wallet address"),
    claim_file: Path = typer.Argument(..., help="JSON claim payload file"),
    key_file: Path = typer.Option(..., "--key-file", "-k", help="Issuer key file from 'issuer keygen'"),
    expires_at: int = typer.Option(0, "--expires-at", help="Expiry (unix seconds, 0 = never)")
) -> None:
    """Sign a claim and print its index and record box values as hex."""
    try:
        signing_key = _load_signing_key(key_file)
        payload = canonical_json(_load_claim_file(claim_file))
        issued_at = int(time.time())
        signature = sign_claim(signing_key, schema_id, subject, payload, issued_at, expires_at)
        record = encode_claim_record(
            subject, generate_did_key(signing_key), schema_id, payload, signature, issued_at, expires_at
        )
    except Exception as e:
        console.print(f"[red]Error encoding claim: {e}[/red]")
        raise typer.Exit(1)

    claim_id = hashlib.sha256(record).hexdigest()
    print(json.dumps({
        "claim_id": claim_id,
        "index_box": index_box_name(subject, schema_id).hex(),
        "record_box": "att:".encode().hex() + claim_id,
        "record": record.hex(),
    }, indent=2))


def _load_signing_key(key_file: Path) -> SigningKey:
    """Load SigningKey from a keygen JSON file."""
    if not key_file.exists():
        raise ValueError(f"Key file not found: {key_file}")
    try:
        key_data = json.loads(key_file.read_text())
        return SigningKey(bytes.fromhex(key_data["private_key"]))
    except (json.JSONDecodeError, KeyError, ValueError) as e:
        raise ValueError(f"Invalid key file: {e}")


def _load_claim_file(claim_file: Path) -> dict:
    """Load and validate JSON claim file."""
    if not claim_file.exists():
        raise ValueError(f"Claim file not found: {claim_file}")

    try:
        claim_data = json.loads(claim_file.read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in claim file: {e}")
    if not isinstance(claim_data, dict):
        raise ValueError("Claim data must be a JSON object")
    return claim_data
