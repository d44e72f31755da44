"""Ordinal-style inscription envelope encoding and decoding.

The envelope sits inside a locking script:

    <prefix> OP_FALSE OP_IF "ord"
        <tag> <value>            (zero or more fields / extensions)
        OP_0 <content>
    OP_ENDIF <suffix>

Tags are small-integer opcodes or one-byte pushes naming a field code
(0 = content, 1 = content type, 3 = parent), or multi-byte pushes holding a
protocol address whose value is stored as an extension. Decoding never raises
on malformed scripts; it returns None when no envelope is present and a
partially filled Envelope when the field list is cut short.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple

from mcp_inscriptions.address import MAX_ADDRESS_LENGTH, Address
from mcp_inscriptions.outpoint import OUTPOINT_SIZE, Outpoint
from mcp_inscriptions.primitives import (
    OP_ENDIF,
    OP_FALSE,
    OP_IF,
    Instruction,
    encode_push_data,
    encode_small_int,
    iter_instructions,
    read_instruction,
)

logger = logging.getLogger(__name__)

MARKER = b"ord"
OPEN_SEQUENCE = bytes([OP_FALSE, OP_IF])
MAX_CONTENT_TYPE_SIZE = 255


class FieldCode(Enum):
    """Envelope field codes. Any other code maps to UNKNOWN."""

    CONTENT = 0
    CONTENT_TYPE = 1
    PARENT = 3
    UNKNOWN = None

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


@dataclass(frozen=True)
class Envelope:
    """Decoded (or caller-built) inscription envelope.

    ``content_hash`` and ``content_size`` are derived from ``content``.
    ``suffix`` is only non-empty for envelopes whose OP_ENDIF was missing.
    Envelopes compare by value but are not hashable.
    """

    __hash__ = None

    content: Optional[bytes] = None
    content_type: Optional[str] = None
    parent: Optional[Outpoint] = None
    extensions: Dict[str, bytes] = field(default_factory=dict)
    prefix: bytes = b""
    suffix: bytes = b""
    content_hash: Optional[bytes] = field(init=False, default=None)
    content_size: int = field(init=False, default=0)

    def __post_init__(self):
        if self.content_type is not None:
            size = len(self.content_type.encode("utf-8"))
            if size > MAX_CONTENT_TYPE_SIZE:
                raise ValueError(
                    f"Content type too long: {size} bytes (maximum {MAX_CONTENT_TYPE_SIZE})"
                )

        extensions = {}
        for key, value in self.extensions.items():
            extensions[Address.from_string(key).address_string] = bytes(value)
        object.__setattr__(self, "extensions", extensions)

        object.__setattr__(self, "prefix", bytes(self.prefix))
        object.__setattr__(self, "suffix", bytes(self.suffix))

        if self.content is not None:
            content = bytes(self.content)
            object.__setattr__(self, "content", content)
            object.__setattr__(self, "content_hash", hashlib.sha256(content).digest())
            object.__setattr__(self, "content_size", len(content))


def _is_field_instruction(instruction: Instruction) -> bool:
    return instruction.is_push or instruction.is_small_int


def _tag_code(tag: Instruction) -> Optional[int]:
    """Field code named by a tag, or None for multi-byte (address) tags."""
    if tag.is_small_int:
        return tag.small_int
    if len(tag.data) == 0:
        return FieldCode.CONTENT.value
    if len(tag.data) == 1:
        return tag.data[0]
    return None


def _extension_key(data: bytes) -> Optional[str]:
    if len(data) > MAX_ADDRESS_LENGTH:
        return None
    try:
        return Address.from_string(data.decode("utf-8")).address_string
    except (UnicodeDecodeError, ValueError):
        return None


def _find_marker(script: bytes, start: int) -> Optional[Instruction]:
    for instruction in iter_instructions(script, start):
        if (
            instruction.opcode == len(MARKER)
            and instruction.data == MARKER
            and instruction.start - len(OPEN_SEQUENCE) >= start
            and script[instruction.start - len(OPEN_SEQUENCE):instruction.start] == OPEN_SEQUENCE
        ):
            return instruction
    return None


def _decode_at(script: bytes, start: int) -> Optional[Tuple[Envelope, int]]:
    """Decode the first envelope at or after ``start``.

    Returns the envelope and the offset at which scanning for a further
    envelope may resume.
    """
    marker = _find_marker(script, start)
    if marker is None:
        return None

    prefix = script[start:marker.start - len(OPEN_SEQUENCE)]
    content = None
    content_type = None
    parent = None
    extensions: Dict[str, bytes] = {}
    pos = marker.end

    while True:
        tag = read_instruction(script, pos)
        value = read_instruction(script, tag.end) if tag is not None else None
        if (
            tag is None
            or value is None
            or not _is_field_instruction(tag)
            or not _is_field_instruction(value)
        ):
            logger.debug("Envelope field list truncated at offset %d", pos)
            envelope = Envelope(
                content_type=content_type,
                parent=parent,
                extensions=extensions,
                prefix=prefix,
            )
            return envelope, pos
        pos = value.end

        code = _tag_code(tag)
        if code is None:
            key = _extension_key(tag.data)
            if key is None:
                logger.debug("Discarding field with unrecognized tag %s", tag.data.hex())
            else:
                extensions[key] = value.data
            continue

        field_code = FieldCode(code)
        if field_code is FieldCode.CONTENT:
            content = value.data
            break
        elif field_code is FieldCode.CONTENT_TYPE:
            if len(value.data) <= MAX_CONTENT_TYPE_SIZE:
                try:
                    content_type = value.data.decode("utf-8")
                except UnicodeDecodeError:
                    logger.debug("Ignoring content type that is not valid UTF-8")
            else:
                logger.debug("Ignoring content type of %d bytes", len(value.data))
        elif field_code is FieldCode.PARENT:
            if len(value.data) == OUTPOINT_SIZE:
                parent = Outpoint.from_bytes(value.data)
            else:
                logger.debug("Ignoring parent of %d bytes", len(value.data))
        else:
            logger.debug("Ignoring unknown field code %d", code)

    suffix = b""
    resume = pos
    closing = read_instruction(script, pos)
    if closing is not None and closing.opcode == OP_ENDIF:
        resume = closing.end
    else:
        logger.debug("Envelope not closed by OP_ENDIF at offset %d", pos)
        suffix = script[pos:]

    envelope = Envelope(
        content=content,
        content_type=content_type,
        parent=parent,
        extensions=extensions,
        prefix=prefix,
        suffix=suffix,
    )
    return envelope, resume


def decode_envelope(script: bytes) -> Optional[Envelope]:
    """Decode the first envelope in a script.

    When the instruction after the content is not OP_ENDIF, ``suffix`` starts
    at that instruction and keeps its bytes. Indexers that resume after the
    mismatched instruction report a suffix without them.

    Args:
        script: Raw script bytes

    Returns:
        The decoded Envelope, or None if the script holds no envelope marker
    """
    result = _decode_at(bytes(script), 0)
    if result is None:
        return None
    return result[0]


def decode_envelopes(script: bytes) -> Iterator[Envelope]:
    """Yield every envelope in a script, in order.

    Each envelope's ``prefix`` holds the bytes between the end of the previous
    envelope and its own open sequence.
    """
    script = bytes(script)
    pos = 0
    while True:
        result = _decode_at(script, pos)
        if result is None:
            return
        envelope, pos = result
        yield envelope


def encode_envelope(envelope: Envelope) -> bytes:
    """Encode an envelope into script bytes.

    Fields are emitted as content type (1), parent (3), extensions sorted by
    key, then content (0), so the output is deterministic.
    """
    parts = [envelope.prefix, OPEN_SEQUENCE, encode_push_data(MARKER)]

    if envelope.content_type is not None:
        parts.append(encode_small_int(FieldCode.CONTENT_TYPE.value))
        parts.append(encode_push_data(envelope.content_type.encode("utf-8")))

    if envelope.parent is not None:
        parts.append(encode_small_int(FieldCode.PARENT.value))
        parts.append(encode_push_data(envelope.parent.to_bytes()))

    for key in sorted(envelope.extensions):
        parts.append(encode_push_data(key.encode("utf-8")))
        parts.append(encode_push_data(envelope.extensions[key]))

    parts.append(encode_small_int(FieldCode.CONTENT.value))
    parts.append(encode_push_data(envelope.content or b""))
    parts.append(bytes([OP_ENDIF]))
    parts.append(envelope.suffix)
    return b"".join(parts)
