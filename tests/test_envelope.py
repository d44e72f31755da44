"""Tests for inscription envelope encoding/decoding."""

import hashlib
import time

import pytest
from mcp_inscriptions.envelope import (
    MARKER,
    OPEN_SEQUENCE,
    Envelope,
    FieldCode,
    decode_envelope,
    decode_envelopes,
    encode_envelope,
)
from mcp_inscriptions.outpoint import Outpoint
from mcp_inscriptions.primitives import encode_push_data

GENESIS_ADDRESS = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
MAP_ADDRESS = "1PuQa7K62MiKCtssSLKy1kh56WWU7MtUR5"

HEADER = OPEN_SEQUENCE + encode_push_data(MARKER)

# OP_FALSE OP_IF "ord" OP_1 "text" OP_0 "hello" OP_ENDIF
HELLO_SCRIPT = bytes.fromhex("0063036f7264510474657874000568656c6c6f68")

P2PKH_LOCK = bytes.fromhex("76a91462e907b15cbf27d5425399ebf6f0fb50ebb88f1888ac")

PARENT = Outpoint(txid=bytes(range(32)).hex(), vout=7)


def field(tag: bytes, value: bytes) -> bytes:
    return tag + encode_push_data(value)


class TestFieldCode:
    """Test field code resolution."""

    @pytest.mark.parametrize("code,expected", [
        (0, FieldCode.CONTENT),
        (1, FieldCode.CONTENT_TYPE),
        (3, FieldCode.PARENT),
    ])
    def test_defined_codes(self, code, expected):
        """Defined codes map to their members."""
        assert FieldCode(code) is expected

    @pytest.mark.parametrize("code", [-1, 2, 4, 16, 255])
    def test_other_codes_are_unknown(self, code):
        """Every other code maps to UNKNOWN."""
        assert FieldCode(code) is FieldCode.UNKNOWN


class TestEnvelopeRecord:
    """Test the Envelope value itself."""

    def test_content_hash_and_size(self):
        """Hash and size are derived from content."""
        envelope = Envelope(content=b"hello")

        assert envelope.content_hash == hashlib.sha256(b"hello").digest()
        assert envelope.content_size == 5

    def test_no_content(self):
        """Without content there is no hash and size is zero."""
        envelope = Envelope()

        assert envelope.content is None
        assert envelope.content_hash is None
        assert envelope.content_size == 0

    def test_is_immutable(self):
        """Envelopes cannot be mutated after construction."""
        envelope = Envelope(content=b"hello")

        with pytest.raises(AttributeError):
            envelope.content = b"other"

    def test_not_hashable(self):
        """Envelopes compare by value but cannot be hashed."""
        assert Envelope(content=b"x") == Envelope(content=b"x")

        with pytest.raises(TypeError):
            hash(Envelope(content=b"x"))

    def test_copies_buffers(self):
        """Mutable inputs are copied into owned bytes."""
        buffer = bytearray(b"abc")
        envelope = Envelope(content=buffer, prefix=buffer)
        buffer[0] = ord("z")

        assert envelope.content == b"abc"
        assert envelope.prefix == b"abc"

    def test_rejects_invalid_extension_key(self):
        """Extension keys must be valid addresses."""
        with pytest.raises(ValueError):
            Envelope(content=b"x", extensions={"not-an-address": b"v"})

    def test_rejects_long_content_type(self):
        """Content types must fit in 255 bytes."""
        with pytest.raises(ValueError, match="Content type too long"):
            Envelope(content=b"x", content_type="a" * 256)


class TestDecodeScenarios:
    """Decode hand-assembled scripts."""

    def test_decode_hello(self):
        """Content type and content are decoded; the close leaves no suffix."""
        envelope = decode_envelope(HELLO_SCRIPT)

        assert envelope.content == b"hello"
        assert envelope.content_type == "text"
        assert envelope.content_size == 5
        assert envelope.content_hash == hashlib.sha256(b"hello").digest()
        assert envelope.prefix == b""
        assert envelope.suffix == b""

    def test_decode_missing_close(self):
        """A missing OP_ENDIF still yields the decoded content."""
        envelope = decode_envelope(HELLO_SCRIPT[:-1])

        assert envelope.content == b"hello"
        assert envelope.content_type == "text"
        assert envelope.suffix == b""

    def test_decode_mismatched_close(self):
        """Without OP_ENDIF the suffix starts at, and keeps, the mismatched instruction."""
        trailing = bytes([0x75, 0x51])  # OP_DROP OP_1
        envelope = decode_envelope(HELLO_SCRIPT[:-1] + trailing)

        assert envelope.content == b"hello"
        assert envelope.suffix == trailing

    def test_decode_with_prefix(self):
        """Bytes before OP_FALSE OP_IF become the prefix."""
        envelope = decode_envelope(P2PKH_LOCK + HELLO_SCRIPT)

        assert envelope.prefix == P2PKH_LOCK
        assert envelope.content == b"hello"

    def test_no_marker_is_absent(self):
        """Scripts without the marker decode to None."""
        assert decode_envelope(P2PKH_LOCK) is None
        assert decode_envelope(b"") is None

    def test_marker_without_open_sequence(self):
        """The "ord" push alone is not an envelope."""
        script = bytes([0x51, 0x63]) + HELLO_SCRIPT[2:]

        assert decode_envelope(script) is None

    def test_marker_at_script_start(self):
        """A marker with no room for the open sequence is ignored."""
        assert decode_envelope(HELLO_SCRIPT[2:]) is None

    def test_truncated_marker_push(self):
        """A truncated "ord" push is not a marker."""
        assert decode_envelope(OPEN_SEQUENCE + bytes([0x03]) + b"or") is None

    def test_accepts_bytearray(self):
        """Decoding works on mutable buffers."""
        assert decode_envelope(bytearray(HELLO_SCRIPT)).content == b"hello"

    def test_only_first_envelope(self):
        """Only the first of several envelopes is decoded."""
        second = HELLO_SCRIPT.replace(b"hello", b"world")

        envelope = decode_envelope(HELLO_SCRIPT + second)

        assert envelope.content == b"hello"


class TestFieldDecoding:
    """Test the tag/value field loop."""

    def test_zero_length_tag_push_is_content(self):
        """OP_0 as a tag names the content field."""
        script = HEADER + bytes([0x00]) + encode_push_data(b"body") + b"\x68"

        assert decode_envelope(script).content == b"body"

    def test_pushdata1_empty_tag_is_content(self):
        """An empty OP_PUSHDATA1 tag also names the content field."""
        script = HEADER + bytes([0x4C, 0x00]) + encode_push_data(b"body") + b"\x68"

        assert decode_envelope(script).content == b"body"

    def test_single_byte_push_tag(self):
        """A one-byte push tag uses the byte value as field code."""
        script = HEADER + field(b"\x01\x01", b"image/png") + field(b"\x01\x00", b"img") + b"\x68"

        envelope = decode_envelope(script)

        assert envelope.content_type == "image/png"
        assert envelope.content == b"img"

    def test_small_int_value_is_empty_data(self):
        """A small-integer opcode used as a value carries no data."""
        script = HEADER + bytes([0x00, 0x55]) + b"\x68"

        envelope = decode_envelope(script)

        assert envelope.content == b""
        assert envelope.suffix == b""

    def test_unknown_fields_ignored(self):
        """Unknown field codes are skipped."""
        script = (
            HEADER
            + field(b"\x52", b"two")
            + field(b"\x4f", b"negative")
            + field(b"\x01\x09", b"nine")
            + field(b"\x00", b"body")
            + b"\x68"
        )

        envelope = decode_envelope(script)

        assert envelope.content == b"body"
        assert envelope.content_type is None

    def test_content_type_boundary(self):
        """255-byte content type is accepted; 256 bytes is ignored."""
        accepted = decode_envelope(
            HEADER + field(b"\x51", b"a" * 255) + field(b"\x00", b"x") + b"\x68"
        )
        ignored = decode_envelope(
            HEADER + field(b"\x51", b"a" * 256) + field(b"\x00", b"x") + b"\x68"
        )

        assert accepted.content_type == "a" * 255
        assert ignored.content_type is None
        assert ignored.content == b"x"

    def test_content_type_invalid_utf8_ignored(self):
        """Content types that are not UTF-8 are ignored."""
        envelope = decode_envelope(
            HEADER + field(b"\x51", b"\xff\xfe") + field(b"\x00", b"x") + b"\x68"
        )

        assert envelope.content_type is None
        assert envelope.content == b"x"

    @pytest.mark.parametrize("size", [35, 37])
    def test_parent_wrong_size_ignored(self, size):
        """Parent values must be exactly 36 bytes."""
        envelope = decode_envelope(
            HEADER + field(b"\x53", b"\x01" * size) + field(b"\x00", b"x") + b"\x68"
        )

        assert envelope.parent is None
        assert envelope.content == b"x"

    def test_parent_36_bytes(self):
        """A 36-byte parent is decoded as an outpoint."""
        envelope = decode_envelope(
            HEADER + field(b"\x53", PARENT.to_bytes()) + field(b"\x00", b"x") + b"\x68"
        )

        assert envelope.parent == PARENT

    def test_extension_address_tag(self):
        """Multi-byte tags that parse as addresses become extensions."""
        script = (
            HEADER
            + field(encode_push_data(MAP_ADDRESS.encode()), b"SET app test")
            + field(b"\x00", b"x")
            + b"\x68"
        )

        envelope = decode_envelope(script)

        assert envelope.extensions == {MAP_ADDRESS: b"SET app test"}
        assert envelope.content == b"x"

    def test_invalid_multibyte_tag_discarded(self):
        """Multi-byte tags that are not addresses are skipped."""
        script = (
            HEADER
            + field(encode_push_data(b"not-an-address"), b"value")
            + field(encode_push_data(b"\xff\xfe\xfd"), b"value")
            + field(b"\x51", b"text/plain")
            + field(b"\x00", b"x")
            + b"\x68"
        )

        envelope = decode_envelope(script)

        assert envelope.extensions == {}
        assert envelope.content_type == "text/plain"
        assert envelope.content == b"x"

    def test_long_multibyte_tag_discarded_quickly(self):
        """A megabyte-long tag is skipped without slowing the decode."""
        script = (
            HEADER
            + field(encode_push_data(b"z" * 1_000_000), b"value")
            + field(b"\x01\x01", b"text/plain")
            + field(b"\x00", b"hi")
            + b"\x68"
        )

        started = time.monotonic()
        envelope = decode_envelope(script)
        elapsed = time.monotonic() - started

        assert envelope.content == b"hi"
        assert envelope.content_type == "text/plain"
        assert envelope.extensions == {}
        assert elapsed < 2.0

    def test_truncated_value(self):
        """A missing value stops decoding with what was accumulated."""
        script = HEADER + field(b"\x51", b"text/plain") + b"\x00"

        envelope = decode_envelope(script)

        assert envelope.content_type == "text/plain"
        assert envelope.content is None
        assert envelope.suffix == b""

    def test_truncated_push_in_value(self):
        """A content push claiming too many bytes stops decoding."""
        script = HEADER + field(b"\x51", b"text/plain") + b"\x00" + bytes([0x4C, 200]) + b"short"

        envelope = decode_envelope(script)

        assert envelope.content_type == "text/plain"
        assert envelope.content is None

    @pytest.mark.parametrize("opcode", [0x50, 0x61, 0x68, 0x76])
    def test_non_field_tag_stops(self, opcode):
        """Tags that are neither pushes nor small integers stop the loop."""
        script = HEADER + bytes([opcode]) + field(b"\x00", b"x") + b"\x68"

        envelope = decode_envelope(script)

        assert envelope is not None
        assert envelope.content is None

    def test_non_field_value_stops(self):
        """Values that are neither pushes nor small integers stop the loop."""
        script = HEADER + bytes([0x00, 0x76]) + b"\x68"

        envelope = decode_envelope(script)

        assert envelope.content is None

    def test_empty_body(self):
        """An envelope with no fields decodes with no content."""
        envelope = decode_envelope(HEADER)

        assert envelope is not None
        assert envelope.content is None


class TestEncoding:
    """Test envelope encoding."""

    def test_encode_hello(self):
        """Encoding produces the canonical byte layout."""
        envelope = Envelope(content=b"hello", content_type="text")

        assert encode_envelope(envelope) == HELLO_SCRIPT

    def test_encode_prefix_and_suffix(self):
        """Prefix and suffix are emitted verbatim around the envelope."""
        envelope = Envelope(content=b"hello", content_type="text", prefix=P2PKH_LOCK, suffix=b"\x75")

        script = encode_envelope(envelope)

        assert script == P2PKH_LOCK + HELLO_SCRIPT + b"\x75"

    def test_encode_without_content(self):
        """Missing content is encoded as an empty content field."""
        script = encode_envelope(Envelope())

        assert script == HEADER + b"\x00\x00\x68"

    def test_encode_large_content(self):
        """Large content uses the extended push encodings."""
        content = b"x" * 70000
        envelope = decode_envelope(encode_envelope(Envelope(content=content)))

        assert envelope.content == content

    def test_extension_order_is_deterministic(self):
        """Extension output does not depend on insertion order."""
        first = Envelope(content=b"x", extensions={GENESIS_ADDRESS: b"a", MAP_ADDRESS: b"b"})
        second = Envelope(content=b"x", extensions={MAP_ADDRESS: b"b", GENESIS_ADDRESS: b"a"})

        assert encode_envelope(first) == encode_envelope(second)

    def test_content_type_under_field_one(self):
        """The content type, not the content, is written under field 1."""
        envelope = Envelope(content=b"body", content_type="text/plain")

        script = encode_envelope(envelope)

        assert field(b"\x51", b"text/plain") in script
        assert script.count(b"body") == 1


class TestRoundTrip:
    """Test decode(encode(e)) properties."""

    @pytest.mark.parametrize("content", [b"", b"a", b"hello world", bytes(range(256)) * 4])
    def test_content_roundtrip(self, content):
        """Content and hash survive a round trip."""
        decoded = decode_envelope(encode_envelope(Envelope(content=content)))

        assert decoded.content == content
        assert decoded.content_hash == hashlib.sha256(content).digest()

    def test_full_roundtrip(self):
        """All fields survive a round trip."""
        envelope = Envelope(
            content=b'{"p":"bsv21"}',
            content_type="application/bsv-20",
            parent=PARENT,
            extensions={MAP_ADDRESS: b"meta", GENESIS_ADDRESS: b""},
            prefix=P2PKH_LOCK,
        )

        assert decode_envelope(encode_envelope(envelope)) == envelope

    def test_parent_roundtrip(self):
        """The parent outpoint is preserved exactly."""
        decoded = decode_envelope(encode_envelope(Envelope(content=b"x", parent=PARENT)))

        assert decoded.parent.to_bytes() == PARENT.to_bytes()

    @pytest.mark.parametrize("envelope", [
        Envelope(),
        Envelope(content=b"x", suffix=b"\x75\x76"),
        Envelope(content=b"x", content_type="", prefix=b"\x51"),
        Envelope(content=b"x", extensions={MAP_ADDRESS: b"v"}, parent=PARENT),
    ])
    def test_idempotent_after_one_roundtrip(self, envelope):
        """A second round trip changes nothing."""
        once = decode_envelope(encode_envelope(envelope))
        twice = decode_envelope(encode_envelope(once))

        assert twice == once


class TestDecodeAll:
    """Test iterating every envelope in a script."""

    def test_multiple_envelopes(self):
        """Every envelope is yielded in order."""
        second = encode_envelope(Envelope(content=b"world", content_type="text"))
        script = P2PKH_LOCK + HELLO_SCRIPT + b"\x75" + second

        envelopes = list(decode_envelopes(script))

        assert [e.content for e in envelopes] == [b"hello", b"world"]
        assert envelopes[0].prefix == P2PKH_LOCK
        assert envelopes[1].prefix == b"\x75"

    def test_no_envelopes(self):
        """Scripts without markers yield nothing."""
        assert list(decode_envelopes(P2PKH_LOCK)) == []

    def test_truncated_envelope_then_valid(self):
        """Scanning resumes after a truncated envelope."""
        truncated = HEADER + bytes([0x76])
        script = truncated + HELLO_SCRIPT

        envelopes = list(decode_envelopes(script))

        assert envelopes[0].content is None
        assert envelopes[-1].content == b"hello"
