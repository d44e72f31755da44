"""Protocol implementations carried by inscription envelopes."""

from mcp_inscriptions.protocols.base import Protocol
from mcp_inscriptions.protocols.bsv21 import Bsv21, decode_bsv21
from mcp_inscriptions.protocols.bsocial import (
    Context,
    Encoding,
    MediaType,
    Message,
    Post,
    parse_map_record,
)

__all__ = [
    "Protocol",
    "Bsv21",
    "decode_bsv21",
    "Context",
    "Encoding",
    "MediaType",
    "Message",
    "Post",
    "parse_map_record",
]
