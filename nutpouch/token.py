"""Cashu token encoding (cashuA / cashuB) and inspection helpers."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Literal, Protocol

import cbor2

from .types import DecodedToken, Proof


TokenVersion = Literal[3, 4]


class TokenCodec(Protocol):
    """Turns proofs into a transferable token string and back."""

    def encode(
        self, mint: str, proofs: list[Proof], unit: str, memo: str | None = None
    ) -> str: ...

    def decode(self, token: str) -> DecodedToken: ...


class CashuTokenCodec:
    """Codec for Cashu V3 (cashuA, JSON) and V4 (cashuB, CBOR) tokens.

    Encodes in ``version`` and decodes either format.
    """

    def __init__(self, version: TokenVersion = 4) -> None:
        if version not in (3, 4):
            raise ValueError(f"Unsupported token version: {version}. Use 3 or 4.")
        self.version = version

    def encode(
        self, mint: str, proofs: list[Proof], unit: str, memo: str | None = None
    ) -> str:
        if self.version == 3:
            return _serialize_v3(proofs, mint, unit, memo)
        return _serialize_v4(proofs, mint, unit, memo)

    def decode(self, token: str) -> DecodedToken:
        token = token.strip()
        if token.startswith("cashuA"):
            return _parse_v3(token[6:])
        if token.startswith("cashuB"):
            return _parse_v4(token[6:])
        if token.startswith("cashu"):
            raise ValueError(f"Unknown token version: {token[:6]}")
        raise ValueError("Invalid token format: must start with cashuA or cashuB")


def _b64_decode(encoded: str) -> bytes:
    # Add correct padding – (-len) % 4 equals 0,1,2,3
    encoded += "=" * ((-len(encoded)) % 4)
    return base64.urlsafe_b64decode(encoded)


def _b64_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def _serialize_v3(
    proofs: list[Proof], mint_url: str, unit: str, memo: str | None
) -> str:
    token_proofs = [
        {"id": p["id"], "amount": p["amount"], "secret": p["secret"], "C": p["C"]}
        for p in proofs
    ]
    token_data: dict = {
        "token": [{"mint": mint_url, "proofs": token_proofs}],
        "unit": unit,
    }
    if memo is not None:
        token_data["memo"] = memo
    json_str = json.dumps(token_data, separators=(",", ":"))
    return f"cashuA{_b64_encode(json_str.encode())}"


def _serialize_v4(
    proofs: list[Proof], mint_url: str, unit: str, memo: str | None
) -> str:
    # V4 groups proofs by keyset
    by_keyset: dict[str, list[Proof]] = {}
    for proof in proofs:
        by_keyset.setdefault(proof["id"], []).append(proof)

    tokens = [
        {
            "i": bytes.fromhex(keyset_id),
            "p": [
                {"a": p["amount"], "s": p["secret"], "c": bytes.fromhex(p["C"])}
                for p in keyset_proofs
            ],
        }
        for keyset_id, keyset_proofs in by_keyset.items()
    ]

    token_data: dict = {"m": mint_url, "u": unit, "t": tokens}
    if memo is not None:
        token_data["d"] = memo
    return f"cashuB{_b64_encode(cbor2.dumps(token_data))}"


def _parse_v3(encoded: str) -> DecodedToken:
    token_data = json.loads(_b64_decode(encoded).decode())
    if not isinstance(token_data, dict):
        raise ValueError("Token payload must be a JSON object")

    entries = token_data.get("token") or []
    if not entries:
        raise ValueError("Token has no mint entries")

    mint_url = entries[0]["mint"]
    proofs: list[Proof] = []
    for entry in entries:
        if entry["mint"] != mint_url:
            raise ValueError("Multi-mint tokens are not supported")
        for proof in entry["proofs"]:
            proofs.append(
                Proof(
                    id=proof["id"],
                    amount=proof["amount"],
                    secret=proof["secret"],
                    C=proof["C"],
                )
            )

    return DecodedToken(
        mint=mint_url,
        proofs=proofs,
        unit=token_data.get("unit", "sat"),
        memo=token_data.get("memo"),
    )


def _parse_v4(encoded: str) -> DecodedToken:
    token_data = cbor2.loads(_b64_decode(encoded))
    if not isinstance(token_data, dict):
        raise ValueError("Token payload must be a CBOR map")

    # 'm' = mint URL, 'u' = unit, 't' = tokens array, 'd' = memo
    proofs: list[Proof] = []
    for entry in token_data.get("t", []):
        keyset_id = entry["i"].hex()
        for proof in entry["p"]:
            proofs.append(
                Proof(
                    id=keyset_id,
                    amount=proof["a"],
                    secret=proof["s"],
                    C=proof["c"].hex(),
                )
            )

    return DecodedToken(
        mint=token_data["m"],
        proofs=proofs,
        unit=token_data.get("u"),
        memo=token_data.get("d"),
    )


# ───────────────────────── Inspection ─────────────────────────────────


@dataclass
class TokenInfo:
    version: TokenVersion
    mint: str
    unit: str | None
    amount: int
    proof_count: int
    memo: str | None = None


@dataclass
class TokenValidation:
    valid: bool
    error: str | None = None
    info: TokenInfo | None = None


def looks_like_token(value: str) -> bool:
    """Cheap prefix check, no decoding."""
    if not isinstance(value, str):
        return False
    return value.strip().startswith(("cashuA", "cashuB"))


def parse_token(token: str) -> TokenInfo:
    """Decode a token for inspection.

    Raises:
        ValueError: If the token is malformed, has no mint or no proofs
    """
    if not token or not isinstance(token, str):
        raise ValueError("Token must be a non-empty string")

    trimmed = token.strip()
    if not looks_like_token(trimmed):
        raise ValueError("Invalid token format: must start with cashuA or cashuB")
    version: TokenVersion = 3 if trimmed.startswith("cashuA") else 4

    try:
        decoded = CashuTokenCodec().decode(trimmed)
    except (ValueError, KeyError, TypeError, AttributeError, cbor2.CBORDecodeError) as e:
        raise ValueError(f"Failed to decode token: {e}") from e

    if not decoded.mint:
        raise ValueError("Token has no mint URL")
    if not decoded.proofs:
        raise ValueError("Token has no proofs")

    return TokenInfo(
        version=version,
        mint=decoded.mint,
        unit=decoded.unit,
        amount=decoded.amount,
        proof_count=len(decoded.proofs),
        memo=decoded.memo,
    )


def validate_token(token: str) -> TokenValidation:
    try:
        return TokenValidation(valid=True, info=parse_token(token))
    except ValueError as e:
        return TokenValidation(valid=False, error=str(e))


def get_token_mint(token: str) -> str | None:
    result = validate_token(token)
    return result.info.mint if result.info else None


def get_token_amount(token: str) -> int | None:
    result = validate_token(token)
    return result.info.amount if result.info else None
