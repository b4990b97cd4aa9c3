import os
import socket
import asyncio
import tempfile
import unittest

from safeshare.sharer import FileSharer
from safeshare.registry import CodeRegistry
from safeshare.common.config import ShareConfig
from safeshare.common.exceptions import ResourceError
from safeshare.test.common import get_free_port, read_raw


def busy_listener():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(('127.0.0.1', 0))
    s.listen(1)
    return s


class TestFileSharer(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.upload_dir = os.path.join(self.tmpdir.name, 'uploads')
        self.config = ShareConfig(share_ip='127.0.0.1', upload_dir=self.upload_dir, accept_timeout=5, bind_attempts=3)
        self.blockers = []
        self.sharer = None

    async def asyncTearDown(self):
        if self.sharer is not None:
            await self.sharer.terminate()
        for blocker in self.blockers:
            blocker.close()
        self.tmpdir.cleanup()

    def stage(self, name='note.txt', content=b'hello'):
        staging_dir = os.path.join(self.upload_dir, 'abc123')
        os.makedirs(staging_dir)
        file_path = os.path.join(staging_dir, name)
        with open(file_path, 'wb') as f:
            f.write(content)
        return file_path

    def blocked_port(self):
        blocker = busy_listener()
        self.blockers.append(blocker)
        return blocker.getsockname()[1]

    async def wait_released(self, code, timeout=5):
        deadline = asyncio.get_running_loop().time() + timeout
        while code in self.sharer.registry:
            if asyncio.get_running_loop().time() > deadline:
                raise AssertionError('code %s never released' % code)
            await asyncio.sleep(0.01)

    async def test_busy_port_is_skipped(self):
        busy = self.blocked_port()
        free = get_free_port()
        ports = iter([busy, free])
        self.sharer = FileSharer(self.config, CodeRegistry(code_generator=lambda: next(ports)))

        code, err = await self.sharer.offer_file(self.stage())
        self.assertIsNone(err)
        self.assertEqual(code, free)
        self.assertNotIn(busy, self.sharer.registry)
        self.assertEqual(await read_raw(code), b'Filename: note.txt\nhello')

    async def test_every_attempt_blocked(self):
        busy = self.blocked_port()
        calls = []
        def generator():
            calls.append(busy)
            return busy
        self.sharer = FileSharer(self.config, CodeRegistry(code_generator=generator))

        code, err = await self.sharer.offer_file(self.stage())
        self.assertIsNone(code)
        self.assertIsInstance(err, ResourceError)
        self.assertEqual(len(calls), self.config.bind_attempts)
        self.assertEqual(len(self.sharer.registry), 0)

    async def test_served_file_is_removed(self):
        self.sharer = FileSharer(self.config, CodeRegistry(code_generator=get_free_port))
        file_path = self.stage()
        code, err = await self.sharer.offer_file(file_path)
        self.assertIsNone(err)
        await read_raw(code)
        await self.wait_released(code)
        self.assertFalse(os.path.exists(file_path))
        self.assertFalse(os.path.exists(os.path.dirname(file_path)))
        self.assertTrue(os.path.isdir(self.upload_dir))

    async def test_keep_files(self):
        self.config.keep_files = True
        self.sharer = FileSharer(self.config, CodeRegistry(code_generator=get_free_port))
        file_path = self.stage()
        code, err = await self.sharer.offer_file(file_path)
        self.assertIsNone(err)
        await read_raw(code)
        await self.wait_released(code)
        self.assertTrue(os.path.exists(file_path))

    async def test_terminate_removes_unclaimed_files(self):
        self.sharer = FileSharer(self.config, CodeRegistry(code_generator=get_free_port))
        file_path = self.stage()
        code, err = await self.sharer.offer_file(file_path)
        self.assertIsNone(err)
        await self.sharer.terminate()
        self.assertNotIn(code, self.sharer.registry)
        self.assertFalse(os.path.exists(file_path))


if __name__ == '__main__':
    unittest.main()
