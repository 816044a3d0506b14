import socket


class FakeConnection:
    def __init__(self, *chunks: bytes, sockname: tuple[str, int] = ("127.0.0.1", 1080)) -> None:
        self._buffer = bytearray().join(chunks)
        self.sent = bytearray()
        self.closed = False
        self._sockname = sockname

    @property
    def unread(self) -> bytes:
        return bytes(self._buffer)

    def getsockname(self) -> tuple[str, int]:
        return self._sockname

    def recv(self, size: int) -> bytes:
        if size <= 0 or not self._buffer:
            return b""
        chunk = bytes(self._buffer[:size])
        del self._buffer[:size]
        return chunk

    def sendall(self, payload: bytes) -> None:
        self.sent.extend(payload)

    def close(self) -> None:
        self.closed = True


class TrickleConnection(FakeConnection):
    """Hands out one byte per recv call."""

    def recv(self, size: int) -> bytes:
        return super().recv(min(size, 1))


class BrokenConnection(FakeConnection):
    def sendall(self, payload: bytes) -> None:
        raise BrokenPipeError("peer went away")


def recv_exact(sock: socket.socket, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data.extend(chunk)
    return bytes(data)
