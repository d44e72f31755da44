"""MCP server for ordinal-style inscription envelopes.

This server exposes tools for decoding and encoding inscription envelopes,
reading OP_RETURN data carriers, and composing BSV-21 token and bsocial
payloads. All tools work offline on hex-encoded scripts.
"""

import logging
from typing import Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from mcp_inscriptions.config import Config, load_config
from mcp_inscriptions.envelope import (
    Envelope,
    decode_envelope,
    decode_envelopes,
    encode_envelope,
)
from mcp_inscriptions.outpoint import Outpoint
from mcp_inscriptions.primitives import decode_op_return_script, encode_op_return_script
from mcp_inscriptions.protocols import bsocial
from mcp_inscriptions.protocols.bsv21 import OP_BURN, OP_DEPLOY_MINT, OP_TRANSFER, Bsv21, decode_bsv21

logger = logging.getLogger(__name__)


def _from_hex(value: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise ValueError(f"Invalid hex string: {e}")


def _to_bytes(data: str, encoding: str) -> bytes:
    if encoding == "hex":
        return _from_hex(data)
    try:
        return data.encode(encoding)
    except LookupError:
        raise ValueError(f"Unknown encoding: {encoding}")


def _utf8_or_none(data: Optional[bytes]) -> Optional[str]:
    if data is None:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _envelope_to_dict(envelope: Envelope) -> dict:
    return {
        "content_hex": envelope.content.hex() if envelope.content is not None else None,
        "content_utf8": _utf8_or_none(envelope.content),
        "content_hash": envelope.content_hash.hex() if envelope.content_hash is not None else None,
        "content_size": envelope.content_size,
        "content_type": envelope.content_type,
        "parent": str(envelope.parent) if envelope.parent is not None else None,
        "extensions": {k: v.hex() for k, v in envelope.extensions.items()},
        "prefix_hex": envelope.prefix.hex(),
        "suffix_hex": envelope.suffix.hex(),
    }


def _bsv21_to_dict(token: Bsv21, include_script: bool = True) -> dict:
    result = {
        "operation": token.op,
        "id": token.id,
        "symbol": token.symbol,
        "icon": token.icon,
        "amount": token.amt,
        "decimals": token.decimals,
        "json": token.to_json(),
    }
    if include_script:
        result["script_hex"] = encode_envelope(token.to_envelope()).hex()
    return result


def create_server(config: Optional[Config] = None) -> FastMCP:
    """Create and configure the MCP server with all tools.

    Args:
        config: Optional configuration. If not provided, uses defaults.

    Returns:
        Configured FastMCP server instance.
    """
    if config is None:
        config = Config()

    mcp = FastMCP("mcp-inscriptions")

    # Store config on server for access by tools
    mcp._config = config

    def read_script(script_hex: str) -> bytes:
        script = _from_hex(script_hex)
        if len(script) > config.max_script_size:
            raise ValueError(
                f"Script too large: {len(script)} bytes (maximum {config.max_script_size})"
            )
        return script

    # =========================================================================
    # Inscription Envelopes
    # =========================================================================

    @mcp.tool()
    def decode_inscription(script_hex: str) -> dict:
        """Decode the first inscription envelope in a script.

        Args:
            script_hex: Locking script as hex string

        Returns:
            Dictionary with 'found' and, when found, the envelope fields.
        """
        try:
            script = read_script(script_hex)
        except ValueError as e:
            return {"error": str(e)}

        envelope = decode_envelope(script)
        if envelope is None:
            return {"found": False}
        return {"found": True, **_envelope_to_dict(envelope)}

    @mcp.tool()
    def decode_all_inscriptions(script_hex: str) -> dict:
        """Decode every inscription envelope in a script.

        Args:
            script_hex: Locking script as hex string

        Returns:
            Dictionary with 'count' and the list of decoded envelopes.
        """
        try:
            script = read_script(script_hex)
        except ValueError as e:
            return {"error": str(e)}

        envelopes = [_envelope_to_dict(e) for e in decode_envelopes(script)]
        return {"count": len(envelopes), "inscriptions": envelopes}

    @mcp.tool()
    def encode_inscription(
        content: str,
        content_type: Optional[str] = None,
        encoding: str = "utf-8",
        parent: Optional[str] = None,
        extensions: Optional[Dict[str, str]] = None,
        prefix_hex: str = "",
        suffix_hex: str = "",
    ) -> dict:
        """Encode content into an inscription envelope script.

        Args:
            content: Content to inscribe
            content_type: MIME type (default from configuration)
            encoding: Content encoding ('utf-8' or 'hex')
            parent: Parent inscription outpoint ('<txid>_<vout>', optional)
            extensions: Map of protocol address to hex-encoded value (optional)
            prefix_hex: Script bytes placed before the envelope (e.g. a P2PKH lock)
            suffix_hex: Script bytes placed after the envelope

        Returns:
            Dictionary with 'script_hex' and the content hash.
        """
        try:
            envelope = Envelope(
                content=_to_bytes(content, encoding),
                content_type=content_type if content_type is not None else config.default_content_type,
                parent=Outpoint.from_string(parent) if parent else None,
                extensions={k: _from_hex(v) for k, v in (extensions or {}).items()},
                prefix=_from_hex(prefix_hex),
                suffix=_from_hex(suffix_hex),
            )
        except ValueError as e:
            return {"error": str(e)}

        script = encode_envelope(envelope)
        return {
            "script_hex": script.hex(),
            "script_size": len(script),
            "content_size": envelope.content_size,
            "content_hash": envelope.content_hash.hex(),
            "content_type": envelope.content_type,
        }

    # =========================================================================
    # OP_RETURN Data Carriers
    # =========================================================================

    @mcp.tool()
    def encode_op_return(data: str, encoding: str = "utf-8") -> dict:
        """Encode arbitrary data into OP_RETURN script format.

        Args:
            data: Data to encode (string)
            encoding: Encoding for the data ('utf-8', 'hex'). Default: 'utf-8'

        Returns:
            Dictionary with 'script_hex' containing the OP_RETURN script.
        """
        try:
            data_bytes = _to_bytes(data, encoding)
        except ValueError as e:
            return {"error": str(e)}

        return {"script_hex": encode_op_return_script(data_bytes).hex()}

    @mcp.tool()
    def decode_op_return(script_hex: str) -> dict:
        """Parse OP_RETURN data from script hex.

        Args:
            script_hex: OP_RETURN script as hex string

        Returns:
            Dictionary with 'data_hex' and 'data_utf8' (if decodable).
        """
        try:
            data = decode_op_return_script(read_script(script_hex))
        except ValueError as e:
            return {"error": str(e)}

        return {"data_hex": data.hex(), "data_utf8": _utf8_or_none(data)}

    # =========================================================================
    # Token Operations (BSV-21)
    # =========================================================================

    @mcp.tool()
    def parse_bsv21(script_hex: str) -> dict:
        """Interpret a script's inscription as a BSV-21 token operation.

        Args:
            script_hex: Locking script as hex string

        Returns:
            Dictionary with 'valid' and, when valid, the operation fields.
        """
        try:
            script = read_script(script_hex)
        except ValueError as e:
            return {"error": str(e)}

        token = decode_bsv21(script)
        if token is None:
            return {"valid": False}
        return {"valid": True, **_bsv21_to_dict(token, include_script=False)}

    @mcp.tool()
    def create_bsv21_deploy_mint(
        amount: int,
        symbol: Optional[str] = None,
        decimals: int = 0,
        icon: Optional[str] = None,
    ) -> dict:
        """Create a BSV-21 deploy+mint inscription.

        Args:
            amount: Total supply to mint
            symbol: Token symbol (optional)
            decimals: Token decimals, 0-18 (default: 0)
            icon: Icon inscription outpoint (optional)

        Returns:
            Dictionary with the token JSON and inscription script.
        """
        try:
            token = Bsv21(op=OP_DEPLOY_MINT, amt=amount, decimals=decimals, symbol=symbol, icon=icon)
        except ValueError as e:
            return {"error": str(e)}
        return _bsv21_to_dict(token)

    @mcp.tool()
    def create_bsv21_transfer(token_id: str, amount: int, decimals: int = 0) -> dict:
        """Create a BSV-21 transfer inscription.

        Args:
            token_id: Outpoint of the deploy+mint inscription ('<txid>_<vout>')
            amount: Amount to transfer
            decimals: Token decimals (default: 0)

        Returns:
            Dictionary with the token JSON and inscription script.
        """
        try:
            token = Bsv21(op=OP_TRANSFER, amt=amount, decimals=decimals, id=token_id)
        except ValueError as e:
            return {"error": str(e)}
        return _bsv21_to_dict(token)

    @mcp.tool()
    def create_bsv21_burn(token_id: str, amount: int, decimals: int = 0) -> dict:
        """Create a BSV-21 burn inscription.

        Args:
            token_id: Outpoint of the deploy+mint inscription ('<txid>_<vout>')
            amount: Amount to burn
            decimals: Token decimals (default: 0)

        Returns:
            Dictionary with the token JSON and inscription script.
        """
        try:
            token = Bsv21(op=OP_BURN, amt=amount, decimals=decimals, id=token_id)
        except ValueError as e:
            return {"error": str(e)}
        return _bsv21_to_dict(token)

    # =========================================================================
    # Social (bsocial)
    # =========================================================================

    def scripts_result(action: str, scripts: List[bytes]) -> dict:
        return {
            "action": action,
            "output_count": len(scripts),
            "scripts_hex": [s.hex() for s in scripts],
        }

    @mcp.tool()
    def create_bsocial_post(
        content: str,
        public_key_hex: str,
        media_type: str = "text/plain",
        encoding: str = "utf-8",
        context: Optional[str] = None,
        context_value: str = "",
        subcontext: Optional[str] = None,
        subcontext_value: str = "",
        tags: Optional[List[str]] = None,
    ) -> dict:
        """Build the OP_RETURN outputs for a bsocial post.

        Args:
            content: Post body
            public_key_hex: Compressed public key of the author (33 bytes hex)
            media_type: Media type of the body (default: 'text/plain')
            encoding: Body encoding ('utf-8', 'base64', 'hex')
            context: Context type ('tx', 'channel', 'bapID', 'provider', 'videoID')
            context_value: Value for the context
            subcontext: Subcontext type
            subcontext_value: Value for the subcontext
            tags: Tags attached to the post

        Returns:
            Dictionary with the output scripts as hex.
        """
        try:
            post = bsocial.Post(
                content=content,
                media_type=bsocial.MediaType(media_type),
                encoding=bsocial.Encoding(encoding),
                context=bsocial.Context(context) if context else None,
                context_value=context_value,
                subcontext=bsocial.Context(subcontext) if subcontext else None,
                subcontext_value=subcontext_value,
                tags=list(tags or []),
            )
            scripts = bsocial.create_post(post, _from_hex(public_key_hex), config.app_name)
        except ValueError as e:
            return {"error": str(e)}
        return scripts_result("post", scripts)

    @mcp.tool()
    def create_bsocial_reply(
        content: str,
        reply_txid: str,
        public_key_hex: str,
        media_type: str = "text/plain",
        encoding: str = "utf-8",
    ) -> dict:
        """Build the OP_RETURN outputs for a reply to an existing post.

        Args:
            content: Reply body
            reply_txid: Transaction id of the post being replied to
            public_key_hex: Compressed public key of the author (33 bytes hex)
            media_type: Media type of the body (default: 'text/plain')
            encoding: Body encoding ('utf-8', 'base64', 'hex')

        Returns:
            Dictionary with the output scripts as hex.
        """
        try:
            reply = bsocial.Post(
                content=content,
                media_type=bsocial.MediaType(media_type),
                encoding=bsocial.Encoding(encoding),
            )
            scripts = bsocial.create_reply(reply, reply_txid, _from_hex(public_key_hex), config.app_name)
        except ValueError as e:
            return {"error": str(e)}
        return scripts_result("reply", scripts)

    @mcp.tool()
    def create_bsocial_like(txid: str, public_key_hex: str) -> dict:
        """Build the OP_RETURN output liking a post."""
        try:
            scripts = bsocial.create_like(txid, _from_hex(public_key_hex), config.app_name)
        except ValueError as e:
            return {"error": str(e)}
        return scripts_result("like", scripts)

    @mcp.tool()
    def create_bsocial_unlike(txid: str, public_key_hex: str) -> dict:
        """Build the OP_RETURN output removing a like."""
        try:
            scripts = bsocial.create_unlike(txid, _from_hex(public_key_hex), config.app_name)
        except ValueError as e:
            return {"error": str(e)}
        return scripts_result("unlike", scripts)

    @mcp.tool()
    def create_bsocial_follow(bap_id: str, public_key_hex: str) -> dict:
        """Build the OP_RETURN output following an identity."""
        try:
            scripts = bsocial.create_follow(bap_id, _from_hex(public_key_hex), config.app_name)
        except ValueError as e:
            return {"error": str(e)}
        return scripts_result("follow", scripts)

    @mcp.tool()
    def create_bsocial_unfollow(bap_id: str, public_key_hex: str) -> dict:
        """Build the OP_RETURN output unfollowing an identity."""
        try:
            scripts = bsocial.create_unfollow(bap_id, _from_hex(public_key_hex), config.app_name)
        except ValueError as e:
            return {"error": str(e)}
        return scripts_result("unfollow", scripts)

    @mcp.tool()
    def create_bsocial_message(
        content: str,
        context: str,
        context_value: str,
        public_key_hex: str,
        media_type: str = "text/plain",
        encoding: str = "utf-8",
    ) -> dict:
        """Build the OP_RETURN outputs for a channel or direct message.

        Args:
            content: Message body
            context: Context type ('channel', 'bapID', ...)
            context_value: Channel name or identity key
            public_key_hex: Compressed public key of the author (33 bytes hex)
            media_type: Media type of the body (default: 'text/plain')
            encoding: Body encoding ('utf-8', 'base64', 'hex')

        Returns:
            Dictionary with the output scripts as hex.
        """
        try:
            message = bsocial.Message(
                content=content,
                context=bsocial.Context(context),
                context_value=context_value,
                media_type=bsocial.MediaType(media_type),
                encoding=bsocial.Encoding(encoding),
            )
            scripts = bsocial.create_message(message, _from_hex(public_key_hex), config.app_name)
        except ValueError as e:
            return {"error": str(e)}
        return scripts_result("message", scripts)

    @mcp.tool()
    def parse_bsocial_map(script_hex: str) -> dict:
        """Read the key/value record of a MAP SET output.

        Args:
            script_hex: OP_RETURN script as hex string

        Returns:
            Dictionary with 'valid' and, when valid, the MAP record.
        """
        try:
            script = read_script(script_hex)
        except ValueError as e:
            return {"error": str(e)}

        record = bsocial.parse_map_record(script)
        if record is None:
            return {"valid": False}
        return {"valid": True, "record": record}

    return mcp


def main():
    """Entry point for the MCP server."""
    from pathlib import Path

    # Try to load config from standard locations
    config_paths = [
        Path("mcp-inscriptions.toml"),
        Path.home() / ".config" / "mcp-inscriptions" / "config.toml",
    ]

    config = None
    for path in config_paths:
        if path.exists():
            config = load_config(path)
            break

    if config is None:
        config = Config()

    logging.basicConfig(level=config.log_level)
    logger.info("Starting mcp-inscriptions server")

    server = create_server(config)
    server.run()


if __name__ == "__main__":
    main()
