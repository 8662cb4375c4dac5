"""Subprocess plumbing: pipe multiplexing, the status protocol and sessions.

Public API: GpgSession, Multiplexer, ReadResult, StatusProtocol, read_chunk
Internal: multiplexer, session, status_protocol
"""

from gpgmeh.infra.multiplexer import Multiplexer, ReadResult, ReadStatus, read_chunk
from gpgmeh.infra.session import GpgSession
from gpgmeh.infra.status_protocol import ProtocolState, StatusProtocol

__all__ = [
    "GpgSession",
    "Multiplexer",
    "ProtocolState",
    "ReadResult",
    "ReadStatus",
    "StatusProtocol",
    "read_chunk",
]
