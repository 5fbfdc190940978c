"""
File Fetcher.

Downloads files the server exposes for download (e.g. collection archives
under downloads/<client>/<flow>/) with successive VFSGetBuffer calls.
"""

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath

import grpc

from velociraptor_api.api.connection import Connection, translate_rpc_error
from velociraptor_api.api.proto import VFSFileBuffer
from velociraptor_api.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_LENGTH = 1024

_DRIVE = re.compile(r"[A-Za-z]:")


def path_components(path: str | PurePosixPath) -> list[str]:
    """
    Split a path into its normal segments.

    Root, drive, "." and ".." segments are dropped so nothing navigational
    is sent to the server: "a/../../etc/passwd" gives ["a", "etc", "passwd"]
    and "C:\\Windows\\x" gives ["Windows", "x"].
    """
    posix = PurePosixPath(str(path).replace("\\", "/"))
    parts = [
        part for part in posix.parts
        if part != posix.anchor and part not in (".", "..")
    ]
    if parts and _DRIVE.fullmatch(parts[0]):
        parts = parts[1:]
    return parts


@dataclass
class FileFetchCursor:
    components: list[str]
    chunk_length: int = DEFAULT_CHUNK_LENGTH
    offset: int = 0
    chunks: list[bytes] = field(default_factory=list)

    def request(self):
        return VFSFileBuffer(
            components=self.components,
            offset=self.offset,
            length=self.chunk_length,
        )

    def advance(self, data: bytes) -> bool:
        """Record a chunk. Returns False once the server signals end of file."""
        if not data:
            return False
        self.chunks.append(data)
        self.offset += len(data)
        return True


class FileFetcher:
    """Reads a remote file chunk by chunk over one channel."""

    def __init__(self, connection: Connection, chunk_length: int = DEFAULT_CHUNK_LENGTH) -> None:
        self._connection = connection
        self.chunk_length = chunk_length

    async def fetch(self, path: str | PurePosixPath) -> bytes:
        """
        Download path from the server.

        Raises:
            TransportError: If the server cannot be reached
            CallError: If the server fails a read
        """
        cursor = FileFetchCursor(path_components(path), self.chunk_length)
        logger.debug("Fetching file", components=cursor.components)

        try:
            async with self._connection.open() as stub:
                while True:
                    response = await stub.VFSGetBuffer(cursor.request())
                    if not cursor.advance(response.data):
                        break
        except grpc.RpcError as e:
            raise translate_rpc_error(e) from e

        logger.debug("Fetched file", components=cursor.components, size=cursor.offset)
        return b"".join(cursor.chunks)
