"""
Base58 (Bitcoin alphabet) encoding used for Solana addresses and signatures.
"""

from __future__ import annotations

import base64
import binascii

_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE58_INDEX = {char: index for index, char in enumerate(_BASE58_ALPHABET)}


def base58_decode(value: str) -> bytes:
    if not value:
        return b""
    num = 0
    for char in value:
        if char not in _BASE58_INDEX:
            raise ValueError("Invalid base58 character")
        num = num * 58 + _BASE58_INDEX[char]
    combined = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    pad = len(value) - len(value.lstrip("1"))
    return b"\x00" * pad + combined


def base58_encode(data: bytes) -> str:
    if not data:
        return ""
    num = int.from_bytes(data, "big")
    encoded = ""
    while num > 0:
        num, rem = divmod(num, 58)
        encoded = _BASE58_ALPHABET[rem] + encoded
    pad = 0
    for byte in data:
        if byte == 0:
            pad += 1
        else:
            break
    return "1" * pad + encoded


def looks_base58(value: str) -> bool:
    return bool(value) and all(char in _BASE58_INDEX for char in value)


def decode_base64(value: str) -> bytes:
    """Decode standard or URL-safe base64, tolerating missing padding."""
    candidate = value.strip()
    try:
        return base64.b64decode(candidate, validate=True)
    except (ValueError, binascii.Error):
        padded = candidate + "=" * (-len(candidate) % 4)
        try:
            return base64.b64decode(padded, altchars=b"-_", validate=True)
        except (ValueError, binascii.Error) as exc:
            raise ValueError("Unsupported base64 encoding") from exc
