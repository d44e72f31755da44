"""Base58Check P2PKH address parsing and formatting.

Extension keys inside an envelope are protocol addresses (for example the
MAP prefix ``1PuQa7K62MiKCtssSLKy1kh56WWU7MtUR5``). Only strings that decode
to a well-formed, checksummed P2PKH address are recognized.
"""

import hashlib
from dataclasses import dataclass
from enum import IntEnum

B58_DIGITS = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

# 25 bytes never encode to more than 35 Base58 characters
MAX_ADDRESS_LENGTH = 35


class AddressVersion(IntEnum):
    """P2PKH version bytes."""

    MAINNET = 0x00
    TESTNET = 0x6F


def _double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def b58encode(data: bytes) -> str:
    """Encode bytes as Base58, keeping leading zero bytes as '1'."""
    value = int.from_bytes(data, 'big')
    output = []
    while value > 0:
        value, remainder = divmod(value, 58)
        output.append(B58_DIGITS[remainder])

    leading_zero_count = len(data) - len(data.lstrip(b"\x00"))
    return B58_DIGITS[0] * leading_zero_count + "".join(reversed(output))


def b58decode(value: str) -> bytes:
    """Decode a Base58 string.

    Raises:
        ValueError: On characters outside the Base58 alphabet
    """
    number = 0
    for character in value:
        index = B58_DIGITS.find(character)
        if index == -1:
            raise ValueError(f"Invalid Base58 character: {character!r}")
        number = number * 58 + index

    body = number.to_bytes((number.bit_length() + 7) // 8, 'big')
    padding = len(value) - len(value.lstrip(B58_DIGITS[0]))
    return b"\x00" * padding + body


@dataclass(frozen=True)
class Address:
    """A decoded P2PKH address."""

    address_string: str
    public_key_hash: bytes
    version: AddressVersion

    @classmethod
    def from_string(cls, value: str) -> "Address":
        """Parse a Base58Check P2PKH address.

        Raises:
            ValueError: If the string is not a valid address
        """
        if len(value) > MAX_ADDRESS_LENGTH:
            raise ValueError(f"Invalid address length: {len(value)} characters")
        decoded = b58decode(value)
        if len(decoded) != 25:
            raise ValueError(f"Invalid address length: expected 25 bytes, got {len(decoded)}")

        payload, checksum = decoded[:-4], decoded[-4:]
        if _double_sha256(payload)[:4] != checksum:
            raise ValueError(f"Invalid address checksum: {value}")

        try:
            version = AddressVersion(payload[0])
        except ValueError:
            raise ValueError(f"Unsupported address version: {payload[0]:#x}")

        return cls(
            address_string=b58encode(decoded),
            public_key_hash=payload[1:],
            version=version,
        )

    @classmethod
    def from_public_key_hash(cls, public_key_hash: bytes, version: AddressVersion = AddressVersion.MAINNET) -> "Address":
        """Build an address from a 20-byte public key hash."""
        if len(public_key_hash) != 20:
            raise ValueError(f"Public key hash must be 20 bytes, got {len(public_key_hash)}")
        payload = bytes([version]) + public_key_hash
        return cls(
            address_string=b58encode(payload + _double_sha256(payload)[:4]),
            public_key_hash=public_key_hash,
            version=version,
        )

    def __str__(self) -> str:
        return self.address_string


def parse_address(value: str) -> Address:
    """Parse an address string, raising ValueError if it is not one."""
    return Address.from_string(value)


def is_valid_address(value: str) -> bool:
    """Return True if the string is a valid P2PKH address."""
    try:
        Address.from_string(value)
    except ValueError:
        return False
    return True
