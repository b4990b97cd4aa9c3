import socket
import asyncio


def get_free_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]
    finally:
        s.close()

async def read_raw(port, timeout = 5):
    """Connects to a one-shot server and returns everything it sends"""
    reader, writer = await asyncio.wait_for(asyncio.open_connection('127.0.0.1', port), timeout = timeout)
    try:
        return await asyncio.wait_for(reader.read(), timeout = timeout)
    finally:
        writer.close()


class RawShareServer:
    """Stands in for a one-shot server and sends whatever it is told to"""
    def __init__(self, payload, hold_open=False):
        self.payload = payload
        self.hold_open = hold_open
        self.release = asyncio.Event()
        self.server = None
        self.port = None

    async def handle(self, reader, writer):
        writer.write(self.payload)
        await writer.drain()
        if self.hold_open is True:
            await self.release.wait()
        writer.close()

    async def __aenter__(self):
        self.server = await asyncio.start_server(self.handle, '127.0.0.1', 0)
        self.port = self.server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.release.set()
        self.server.close()
