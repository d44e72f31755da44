"""bsocial protocol output composition.

Social actions are published as OP_FALSE OP_RETURN data carriers:

- B output: the post body with its media type and encoding
- MAP output: ``SET`` key/value metadata (app, type, context...)
- AIP marker: signing algorithm and public key appended to the MAP output

Signature calculation is left to the caller's wallet; the AIP section only
carries the compressed public key.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from mcp_inscriptions.primitives import build_op_return_script, parse_op_return_pushes

MAP_PREFIX = "1PuQa7K62MiKCtssSLKy1kh56WWU7MtUR5"
AIP_PREFIX = "15PciHG22SNLQJXMoSUaWVi7WSqc7hCfva"
APP_NAME = "bsocial"
PIPE = "|"
AIP_ALGORITHM = "BITCOIN_ECDSA"


class MediaType(str, Enum):
    TEXT_PLAIN = "text/plain"
    TEXT_MARKDOWN = "text/markdown"
    TEXT_HTML = "text/html"
    IMAGE_PNG = "image/png"
    IMAGE_JPEG = "image/jpeg"


class Encoding(str, Enum):
    UTF8 = "utf-8"
    BASE64 = "base64"
    HEX = "hex"


class Context(str, Enum):
    TX = "tx"
    CHANNEL = "channel"
    BAP_ID = "bapID"
    PROVIDER = "provider"
    VIDEO_ID = "videoID"


@dataclass
class Post:
    """A new piece of content."""

    content: str
    media_type: MediaType = MediaType.TEXT_PLAIN
    encoding: Encoding = Encoding.UTF8
    context: Optional[Context] = None
    context_value: str = ""
    subcontext: Optional[Context] = None
    subcontext_value: str = ""
    tags: List[str] = field(default_factory=list)


@dataclass
class Message:
    """A message in a channel or to a user."""

    content: str
    context: Context
    context_value: str
    media_type: MediaType = MediaType.TEXT_PLAIN
    encoding: Encoding = Encoding.UTF8


def _check_public_key(public_key: bytes) -> None:
    if len(public_key) != 33 or public_key[0] not in (0x02, 0x03):
        raise ValueError("Public key must be a 33-byte compressed key")


def _b_script(content: str, media_type: MediaType, encoding: Encoding) -> bytes:
    return build_op_return_script([
        b"B",
        content.encode("utf-8"),
        MediaType(media_type).value.encode(),
        Encoding(encoding).value.encode(),
        b"UTF8",
    ])


def _map_script(kind: str, pairs: List[tuple], public_key: bytes, app_name: str) -> bytes:
    _check_public_key(public_key)
    pushes = [MAP_PREFIX, "SET", "app", app_name, "type", kind]
    for key, value in pairs:
        pushes.extend([key, value])
    pushes.extend([PIPE, AIP_PREFIX, AIP_ALGORITHM])
    return build_op_return_script([p.encode("utf-8") for p in pushes] + [public_key])


def create_post(post: Post, public_key: bytes, app_name: str = APP_NAME) -> List[bytes]:
    """Build the output scripts for a new post.

    Returns:
        B output, MAP output, and a tags MAP output when the post has tags
    """
    pairs = []
    if post.context is not None:
        pairs.append((f"context_{Context(post.context).value}", post.context_value))
    if post.subcontext is not None:
        pairs.append((f"subcontext_{Context(post.subcontext).value}", post.subcontext_value))

    scripts = [
        _b_script(post.content, post.media_type, post.encoding),
        _map_script("post", pairs, public_key, app_name),
    ]

    if post.tags:
        pushes = [MAP_PREFIX, "SET", "app", app_name, "type", "post", "tags", *post.tags]
        scripts.append(build_op_return_script([p.encode("utf-8") for p in pushes]))
    return scripts


def create_reply(reply: Post, reply_txid: str, public_key: bytes, app_name: str = APP_NAME) -> List[bytes]:
    """Build the output scripts for a reply to an existing post."""
    return [
        _b_script(reply.content, reply.media_type, reply.encoding),
        _map_script("post", [("context_tx", reply_txid)], public_key, app_name),
    ]


def create_like(txid: str, public_key: bytes, app_name: str = APP_NAME) -> List[bytes]:
    return [_map_script("like", [("tx", txid)], public_key, app_name)]


def create_unlike(txid: str, public_key: bytes, app_name: str = APP_NAME) -> List[bytes]:
    return [_map_script("unlike", [("tx", txid)], public_key, app_name)]


def create_follow(bap_id: str, public_key: bytes, app_name: str = APP_NAME) -> List[bytes]:
    return [_map_script("follow", [("bapID", bap_id)], public_key, app_name)]


def create_unfollow(bap_id: str, public_key: bytes, app_name: str = APP_NAME) -> List[bytes]:
    return [_map_script("unfollow", [("bapID", bap_id)], public_key, app_name)]


def create_message(message: Message, public_key: bytes, app_name: str = APP_NAME) -> List[bytes]:
    """Build the output scripts for a channel or direct message."""
    pairs = [(f"context_{Context(message.context).value}", message.context_value)]
    return [
        _b_script(message.content, message.media_type, message.encoding),
        _map_script("message", pairs, public_key, app_name),
    ]


def parse_map_record(script: bytes) -> Optional[Dict[str, str]]:
    """Read the key/value pairs of a MAP ``SET`` output.

    Reading stops at the ``|`` separator. A ``tags`` key collects every
    remaining push into a comma-joined value.

    Returns:
        The record, or None if the script is not a MAP SET output
    """
    try:
        pushes = parse_op_return_pushes(script)
    except ValueError:
        return None
    if len(pushes) < 2 or pushes[0] != MAP_PREFIX.encode() or pushes[1] != b"SET":
        return None

    pushes = pushes[2:]
    if PIPE.encode() in pushes:
        pushes = pushes[:pushes.index(PIPE.encode())]
    try:
        values = [p.decode("utf-8") for p in pushes]
    except UnicodeDecodeError:
        return None

    record = {}
    i = 0
    while i < len(values):
        if values[i] == "tags":
            record["tags"] = ",".join(values[i + 1:])
            break
        if i + 1 >= len(values):
            break
        record[values[i]] = values[i + 1]
        i += 2
    return record
