"""Base protocol class for inscription payload protocols."""

from abc import ABC, abstractmethod

from mcp_inscriptions.envelope import Envelope


class Protocol(ABC):
    """Base class for protocols carried in an inscription envelope."""

    @abstractmethod
    def to_bytes(self) -> bytes:
        """Convert to the raw content bytes."""
        pass

    @abstractmethod
    def to_envelope(self) -> Envelope:
        """Wrap the content in an inscription envelope."""
        pass
