#!/usr/bin/env python3
"""
Public key and address helpers for graphene-based chains.

Public keys travel as text: a chain prefix followed by the base58 encoding of
the 33-byte compressed key and a 4-byte ripemd160 checksum. Genesis balances
are owned by addresses, which are derived from the key the same way the node
does it: ripemd160(sha512(key)) with its own 4-byte checksum.
"""

import hashlib

DEFAULT_PREFIX = "BTS"

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
COMPRESSED_KEY_SIZE = 33
CHECKSUM_SIZE = 4


class InvalidKeyError(ValueError):
    """Raised when a public key text cannot be decoded."""


def ripemd160(data: bytes) -> bytes:
    return hashlib.new("ripemd160", data).digest()


def base58_encode(data: bytes) -> str:
    """Encode bytes with the bitcoin base58 alphabet."""
    value = int.from_bytes(data, "big")
    encoded = ""
    while value > 0:
        value, remainder = divmod(value, 58)
        encoded = BASE58_ALPHABET[remainder] + encoded

    # Leading zero bytes are kept as leading '1' characters
    padding = len(data) - len(data.lstrip(b"\x00"))
    return BASE58_ALPHABET[0] * padding + encoded


def base58_decode(text: str) -> bytes:
    """Decode a base58 string, rejecting characters outside the alphabet."""
    value = 0
    for char in text:
        index = BASE58_ALPHABET.find(char)
        if index < 0:
            raise InvalidKeyError(f"Invalid base58 character {char!r} in {text!r}")
        value = value * 58 + index

    decoded = value.to_bytes((value.bit_length() + 7) // 8, "big") if value else b""
    padding = len(text) - len(text.lstrip(BASE58_ALPHABET[0]))
    return b"\x00" * padding + decoded


def parse_public_key(key_text: str, prefix: str = DEFAULT_PREFIX) -> bytes:
    """
    Decode a prefixed public key text into compressed key bytes.

    Args:
        key_text: Key as returned by the node, e.g. "BTS6MRyAjQq8ud7..."
        prefix: Chain prefix the key is expected to carry

    Returns:
        The 33-byte compressed public key

    Raises:
        InvalidKeyError: on a wrong prefix, bad length or checksum mismatch
    """
    if not key_text or not key_text.startswith(prefix):
        raise InvalidKeyError(f"Public key {key_text!r} does not start with {prefix!r}")

    payload = base58_decode(key_text[len(prefix):])
    if len(payload) != COMPRESSED_KEY_SIZE + CHECKSUM_SIZE:
        raise InvalidKeyError(f"Public key {key_text!r} has invalid length {len(payload)}")

    key_data, checksum = payload[:COMPRESSED_KEY_SIZE], payload[COMPRESSED_KEY_SIZE:]
    if ripemd160(key_data)[:CHECKSUM_SIZE] != checksum:
        raise InvalidKeyError(f"Public key {key_text!r} has a bad checksum")
    return key_data


def key_to_address(key_text: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Derive the address text owning balances of the given public key."""
    key_data = parse_public_key(key_text, prefix)
    address_data = ripemd160(hashlib.sha512(key_data).digest())
    checksum = ripemd160(address_data)[:CHECKSUM_SIZE]
    return prefix + base58_encode(address_data + checksum)
