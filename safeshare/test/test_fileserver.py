import os
import socket
import asyncio
import tempfile
import unittest

from safeshare.registry import CodeRegistry, CodeState
from safeshare.fileserver import OneShotFileServer
from safeshare.common.config import ShareConfig
from safeshare.common.exceptions import ResourceError
from safeshare.test.common import get_free_port, read_raw


class TestOneShotFileServer(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.config = ShareConfig(share_ip='127.0.0.1', upload_dir=self.tmpdir.name, accept_timeout=5)
        self.registry = CodeRegistry(code_generator=get_free_port)
        self.file_path = os.path.join(self.tmpdir.name, 'note.txt')
        with open(self.file_path, 'wb') as f:
            f.write(b'hello world')
        self.servers = []

    async def asyncTearDown(self):
        for server in self.servers:
            await server.close()
        self.tmpdir.cleanup()

    async def make_server(self, config=None):
        code = await self.registry.allocate(self.file_path)
        server = OneShotFileServer(self.registry, code, config or self.config)
        self.servers.append(server)
        return code, server

    async def test_serves_header_and_bytes(self):
        code, server = await self.make_server()
        _, err = await server.start()
        self.assertIsNone(err)
        self.assertEqual(self.registry.get(code).state, CodeState.LISTENING)

        run_task = asyncio.create_task(server.run())
        data = await read_raw(code)
        state = await run_task

        self.assertEqual(data, b'Filename: note.txt\nhello world')
        self.assertEqual(state, CodeState.SERVED)
        self.assertEqual(server.bytes_sent, len(b'hello world'))

    async def test_large_file_is_chunked(self):
        payload = os.urandom(100000)
        with open(self.file_path, 'wb') as f:
            f.write(payload)
        code, server = await self.make_server()
        _, err = await server.start()
        self.assertIsNone(err)
        run_task = asyncio.create_task(server.run())
        data = await read_raw(code)
        await run_task
        self.assertEqual(data, b'Filename: note.txt\n' + payload)

    async def test_only_one_connection_is_served(self):
        code, server = await self.make_server()
        _, err = await server.start()
        self.assertIsNone(err)
        run_task = asyncio.create_task(server.run())
        await read_raw(code)
        await run_task
        with self.assertRaises(OSError):
            await read_raw(code)

    async def test_start_once(self):
        code, server = await self.make_server()
        _, err = await server.start()
        self.assertIsNone(err)
        second = OneShotFileServer(self.registry, code, self.config)
        self.servers.append(second)
        _, err = await second.start()
        self.assertIsInstance(err, ResourceError)

    async def test_unknown_code(self):
        server = OneShotFileServer(self.registry, get_free_port(), self.config)
        _, err = await server.start()
        self.assertIsInstance(err, ResourceError)

    async def test_bind_failure_expires_code(self):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            blocker.bind(('127.0.0.1', 0))
            blocker.listen(1)
            busy_port = blocker.getsockname()[1]
            registry = CodeRegistry(code_generator=lambda: busy_port)
            code = await registry.allocate(self.file_path)
            server = OneShotFileServer(registry, code, self.config)
            _, err = await server.start()
            self.assertIsInstance(err, ResourceError)
            self.assertIsNotNone(err.innerexception)
            self.assertEqual(registry.get(code).state, CodeState.EXPIRED)
        finally:
            blocker.close()

    async def test_accept_timeout_expires_code(self):
        config = ShareConfig(share_ip='127.0.0.1', upload_dir=self.tmpdir.name, accept_timeout=0.2)
        code, server = await self.make_server(config)
        _, err = await server.start()
        self.assertIsNone(err)
        state = await server.run()
        self.assertEqual(state, CodeState.EXPIRED)
        with self.assertRaises(OSError):
            await read_raw(code)

    async def test_send_error_expires_code(self):
        code, server = await self.make_server()
        _, err = await server.start()
        self.assertIsNone(err)
        os.remove(self.file_path)
        run_task = asyncio.create_task(server.run())
        data = await read_raw(code)
        state = await run_task
        # the header goes out before the file is opened
        self.assertEqual(data, b'Filename: note.txt\n')
        self.assertEqual(state, CodeState.EXPIRED)


if __name__ == '__main__':
    unittest.main()
