"""BSV-21 fungible token protocol.

BSV-21 tokens are JSON inscriptions with content type
``application/bsv-20``. Every value in the JSON object is a string:

- deploy+mint: create a token and mint its whole supply
- transfer: move tokens of an existing deployment
- burn: destroy tokens of an existing deployment

Transfers and burns name the token by the outpoint of its deploy+mint
inscription (``<txid>_<vout>``).
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from mcp_inscriptions.envelope import Envelope, decode_envelope
from mcp_inscriptions.outpoint import Outpoint
from mcp_inscriptions.protocols.base import Protocol

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/bsv-20"
PROTOCOL = "bsv21"

OP_DEPLOY_MINT = "deploy+mint"
OP_TRANSFER = "transfer"
OP_BURN = "burn"

MAX_DECIMALS = 18
MAX_AMOUNT = 2**64 - 1

_DIGITS = re.compile(r"[0-9]+")


@dataclass
class Bsv21(Protocol):
    """A BSV-21 token operation."""

    op: str
    amt: int = 0
    decimals: int = 0
    id: Optional[str] = None
    symbol: Optional[str] = None
    icon: Optional[str] = None

    def __post_init__(self):
        self.op = self.op.lower()
        if self.op not in (OP_DEPLOY_MINT, OP_TRANSFER, OP_BURN):
            raise ValueError(f"Unknown BSV-21 operation: {self.op}")
        if not 0 <= self.amt <= MAX_AMOUNT:
            raise ValueError(f"Amount out of range: {self.amt}")
        if not 0 <= self.decimals <= MAX_DECIMALS:
            raise ValueError(f"Decimals must be between 0 and {MAX_DECIMALS}, got {self.decimals}")

        if self.op == OP_DEPLOY_MINT:
            self.id = None
        else:
            if self.id is None:
                raise ValueError(f"BSV-21 {self.op} requires a token id")
            Outpoint.from_string(self.id)
            self.symbol = None
            self.icon = None

    def to_json(self) -> str:
        """Convert to BSV-21 JSON format."""
        data = {"p": PROTOCOL, "op": self.op}
        if self.id is not None:
            data["id"] = self.id
        if self.symbol is not None:
            data["sym"] = self.symbol
        if self.icon is not None:
            data["icon"] = self.icon
        data["amt"] = str(self.amt)
        if self.decimals:
            data["dec"] = str(self.decimals)
        return json.dumps(data, separators=(',', ':'))

    def to_bytes(self) -> bytes:
        return self.to_json().encode('utf-8')

    def to_envelope(self) -> Envelope:
        return Envelope(content=self.to_bytes(), content_type=CONTENT_TYPE)

    @classmethod
    def from_envelope(cls, envelope: Envelope) -> Optional["Bsv21"]:
        """Interpret an envelope as a BSV-21 operation.

        Returns:
            The operation, or None if the envelope is not valid BSV-21
        """
        if envelope.content_type != CONTENT_TYPE or envelope.content is None:
            return None

        try:
            data = json.loads(envelope.content)
        except (ValueError, RecursionError):
            logger.debug("BSV-21 content is not JSON")
            return None
        if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
            return None
        if data.get("p") != PROTOCOL or "op" not in data:
            return None

        amt = data.get("amt", "0")
        dec = data.get("dec", "0")
        if not _DIGITS.fullmatch(amt) or not _DIGITS.fullmatch(dec):
            return None

        try:
            return cls(
                op=data["op"],
                amt=int(amt),
                decimals=int(dec),
                id=data.get("id"),
                symbol=data.get("sym"),
                icon=data.get("icon"),
            )
        except ValueError as e:
            logger.debug("Rejecting BSV-21 payload: %s", e)
            return None


def decode_bsv21(script: bytes) -> Optional[Bsv21]:
    """Decode a BSV-21 operation from a locking script."""
    envelope = decode_envelope(script)
    if envelope is None:
        return None
    return Bsv21.from_envelope(envelope)
