"""Cashu curve helpers needed to query proof state (NUT-00 / NUT-07)."""

from __future__ import annotations

import hashlib

from coincurve import PublicKey

from .types import Proof


DOMAIN_SEPARATOR = b"Secp256k1_HashToCurve_Cashu_"


def hash_to_curve(message: bytes) -> PublicKey:
    """Deterministically map a message to a secp256k1 point (NUT-00).

    Y = PublicKey(0x02 || SHA256(SHA256(DOMAIN_SEPARATOR || message) || counter)),
    incrementing the little-endian 32-bit counter until a valid point is found.
    """
    msg_to_hash = hashlib.sha256(DOMAIN_SEPARATOR + message).digest()
    counter = 0
    while counter < 2**16:
        candidate = hashlib.sha256(msg_to_hash + counter.to_bytes(4, "little")).digest()
        try:
            return PublicKey(b"\x02" + candidate)
        except ValueError:
            counter += 1
    raise ValueError("No valid point found")


def proof_y(proof: Proof) -> str:
    """Hex-encoded compressed Y of a proof, the key the mint tracks spends by."""
    return hash_to_curve(proof["secret"].encode("utf-8")).format(compressed=True).hex()
