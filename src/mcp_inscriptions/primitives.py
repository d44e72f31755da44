"""Bitcoin script instruction reading and push-data encoding.

Reading is forgiving: a push whose length prefix runs past the end of the
buffer ends the stream instead of raising. The OP_RETURN helpers at the
bottom are stricter and raise ValueError on malformed carriers.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional

# Bitcoin script opcodes
OP_0 = 0x00
OP_FALSE = OP_0
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1NEGATE = 0x4F
OP_RESERVED = 0x50
OP_1 = 0x51
OP_16 = 0x60
OP_IF = 0x63
OP_ENDIF = 0x68
OP_RETURN = 0x6A

MAX_DIRECT_PUSH = 0x4B


@dataclass(frozen=True)
class Instruction:
    """A single script instruction."""

    opcode: int
    data: bytes
    start: int
    end: int

    @property
    def is_push(self) -> bool:
        """True for OP_0, direct pushes and OP_PUSHDATA1/2/4."""
        return self.opcode <= OP_PUSHDATA4

    @property
    def is_small_int(self) -> bool:
        """True for OP_1NEGATE and OP_1..OP_16."""
        return self.opcode == OP_1NEGATE or OP_1 <= self.opcode <= OP_16

    @property
    def small_int(self) -> Optional[int]:
        """Literal value of a small-integer opcode, None otherwise."""
        if self.opcode == OP_1NEGATE:
            return -1
        if OP_1 <= self.opcode <= OP_16:
            return self.opcode - OP_1 + 1
        return None


def read_instruction(script: bytes, pos: int) -> Optional[Instruction]:
    """Read the instruction starting at ``pos``.

    Returns None at end of stream, including when a push claims more bytes
    than remain in the buffer.
    """
    if pos < 0 or pos >= len(script):
        return None

    opcode = script[pos]
    cursor = pos + 1

    if opcode > OP_PUSHDATA4:
        return Instruction(opcode=opcode, data=b"", start=pos, end=cursor)

    if opcode <= MAX_DIRECT_PUSH:
        length = opcode
    else:
        width = {OP_PUSHDATA1: 1, OP_PUSHDATA2: 2, OP_PUSHDATA4: 4}[opcode]
        if cursor + width > len(script):
            return None
        length = int.from_bytes(script[cursor:cursor + width], 'little')
        cursor += width

    if cursor + length > len(script):
        return None
    return Instruction(
        opcode=opcode,
        data=bytes(script[cursor:cursor + length]),
        start=pos,
        end=cursor + length,
    )


def iter_instructions(script: bytes, pos: int = 0) -> Iterator[Instruction]:
    """Yield instructions from ``pos`` until the stream ends."""
    while True:
        instruction = read_instruction(script, pos)
        if instruction is None:
            return
        yield instruction
        pos = instruction.end


def encode_push_data(data: bytes) -> bytes:
    """Encode data as a single push instruction.

    Uses the smallest push opcode for the data size:
    - empty: OP_0
    - 1-75 bytes: direct push (1 byte length)
    - 76-255 bytes: OP_PUSHDATA1 (1 byte length)
    - 256-65535 bytes: OP_PUSHDATA2 (2 byte length, little-endian)
    - larger: OP_PUSHDATA4 (4 byte length, little-endian)
    """
    length = len(data)

    if length == 0:
        return bytes([OP_0])
    elif length <= MAX_DIRECT_PUSH:
        return bytes([length]) + data
    elif length <= 255:
        return bytes([OP_PUSHDATA1, length]) + data
    elif length <= 65535:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, 'little') + data
    else:
        return bytes([OP_PUSHDATA4]) + length.to_bytes(4, 'little') + data


def encode_small_int(value: int) -> bytes:
    """Encode -1..16 as its no-data opcode (0 becomes OP_0)."""
    if value == -1:
        return bytes([OP_1NEGATE])
    if value == 0:
        return bytes([OP_0])
    if 1 <= value <= 16:
        return bytes([OP_1 + value - 1])
    raise ValueError(f"Small integer out of range: {value}")


def encode_op_return_script(data: bytes) -> bytes:
    """Encode data into a single-push OP_RETURN script."""
    return bytes([OP_RETURN]) + encode_push_data(data)


def decode_op_return_script(script: bytes) -> bytes:
    """Decode data from a single-push OP_RETURN script.

    Raises:
        ValueError: If script is not a valid OP_RETURN
    """
    if len(script) < 2:
        raise ValueError("Script too short")

    if script[0] != OP_RETURN:
        raise ValueError(f"Script is not an OP_RETURN (opcode: {script[0]:#x})")

    push = read_instruction(script, 1)
    if push is None:
        raise ValueError("Script truncated")
    if not push.is_push:
        raise ValueError(f"Invalid push opcode: {push.opcode:#x}")
    return push.data


def build_op_return_script(pushes: List[bytes]) -> bytes:
    """Build an ``OP_FALSE OP_RETURN <push>...`` data-carrier script."""
    return bytes([OP_FALSE, OP_RETURN]) + b"".join(encode_push_data(p) for p in pushes)


def parse_op_return_pushes(script: bytes) -> List[bytes]:
    """Read the pushes of a data-carrier script.

    Accepts both ``OP_RETURN`` and ``OP_FALSE OP_RETURN`` forms.

    Raises:
        ValueError: If the script is not a data carrier or holds non-push
            instructions.
    """
    if script[:2] == bytes([OP_FALSE, OP_RETURN]):
        pos = 2
    elif script[:1] == bytes([OP_RETURN]):
        pos = 1
    else:
        raise ValueError("Script is not an OP_RETURN data carrier")

    pushes = []
    for instruction in iter_instructions(script, pos):
        if not instruction.is_push:
            raise ValueError(f"Invalid push opcode: {instruction.opcode:#x}")
        pushes.append(instruction.data)
        pos = instruction.end

    if pos != len(script):
        raise ValueError(f"Script truncated at offset {pos}")
    return pushes
