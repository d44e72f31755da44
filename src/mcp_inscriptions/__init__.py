"""MCP server and codec for ordinal-style inscription envelopes."""

__version__ = "0.1.0"

# Server entry points
from mcp_inscriptions.server import create_server, main

# Configuration
from mcp_inscriptions.config import Config

# Envelope encoding/decoding
from mcp_inscriptions.envelope import (
    encode_envelope,
    decode_envelope,
    decode_envelopes,
    Envelope,
    FieldCode,
)

# Script primitives
from mcp_inscriptions.primitives import (
    read_instruction,
    iter_instructions,
    encode_push_data,
    encode_op_return_script,
    decode_op_return_script,
)

# Codecs
from mcp_inscriptions.address import Address
from mcp_inscriptions.outpoint import Outpoint

__all__ = [
    # Version
    "__version__",
    # Server
    "create_server",
    "main",
    # Config
    "Config",
    # Envelope
    "encode_envelope",
    "decode_envelope",
    "decode_envelopes",
    "Envelope",
    "FieldCode",
    # Primitives
    "read_instruction",
    "iter_instructions",
    "encode_push_data",
    "encode_op_return_script",
    "decode_op_return_script",
    # Codecs
    "Address",
    "Outpoint",
]
