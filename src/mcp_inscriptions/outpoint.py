"""Transaction output references.

Binary form is 36 bytes: the txid in internal byte order followed by the
output index as a 4-byte little-endian integer. The string form uses the
displayed (reversed) txid hex, e.g. ``<txid>_0``.
"""

import re
from dataclasses import dataclass

OUTPOINT_SIZE = 36

_OUTPOINT_RE = re.compile(r"([0-9a-fA-F]{64})[_.:]([0-9]+)")


@dataclass(frozen=True)
class Outpoint:
    """Reference to a specific output of a specific transaction."""

    txid: str
    vout: int

    def __post_init__(self):
        if not re.fullmatch(r"[0-9a-f]{64}", self.txid):
            raise ValueError(f"Txid must be 64 lowercase hex characters, got {self.txid!r}")
        if not 0 <= self.vout <= 0xFFFFFFFF:
            raise ValueError(f"Output index out of range: {self.vout}")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Outpoint":
        """Decode the 36-byte binary form."""
        if len(data) != OUTPOINT_SIZE:
            raise ValueError(f"Outpoint must be {OUTPOINT_SIZE} bytes, got {len(data)}")
        return cls(
            txid=data[:32][::-1].hex(),
            vout=int.from_bytes(data[32:], 'little'),
        )

    @classmethod
    def from_string(cls, value: str) -> "Outpoint":
        """Parse ``txid_vout`` (``.`` and ``:`` separators are also accepted)."""
        match = _OUTPOINT_RE.fullmatch(value)
        if not match:
            raise ValueError(f"Invalid outpoint: {value!r}")
        return cls(txid=match.group(1).lower(), vout=int(match.group(2)))

    def to_bytes(self) -> bytes:
        return bytes.fromhex(self.txid)[::-1] + self.vout.to_bytes(4, 'little')

    def __str__(self) -> str:
        return f"{self.txid}_{self.vout}"
