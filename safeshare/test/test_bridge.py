import os
import time
import asyncio
import unittest

from safeshare.bridge import DownloadBridge
from safeshare.common.config import ShareConfig
from safeshare.common.exceptions import ClientInputError, ResourceError
from safeshare.protocol.fileheader import FileHeader, DEFAULT_FILENAME
from safeshare.test.common import get_free_port, RawShareServer


class TestParseCode(unittest.TestCase):
    def test_trailing_segment(self):
        self.assertEqual(DownloadBridge.parse_code('/download/4821'), 4821)
        self.assertEqual(DownloadBridge.parse_code('/download/4821/'), 4821)
        self.assertEqual(DownloadBridge.parse_code('/download/4821?x=1'), 4821)

    def test_non_numeric(self):
        with self.assertRaises(ClientInputError):
            DownloadBridge.parse_code('/download/abc')
        with self.assertRaises(ClientInputError):
            DownloadBridge.parse_code('/download')

    def test_out_of_port_range(self):
        with self.assertRaises(ClientInputError):
            DownloadBridge.parse_code('/download/70000')
        with self.assertRaises(ClientInputError):
            DownloadBridge.parse_code('/download/0')


class TestFileHeader(unittest.TestCase):
    def test_to_bytes(self):
        self.assertEqual(FileHeader('note.txt').to_bytes(), b'Filename: note.txt\n')

    def test_newlines_cannot_break_the_line(self):
        self.assertEqual(FileHeader('a\nb.txt').to_bytes(), b'Filename: ab.txt\n')

    def test_from_line(self):
        self.assertEqual(FileHeader.from_line(b'Filename: note.txt\n').filename, 'note.txt')

    def test_from_line_drops_control_characters(self):
        self.assertEqual(FileHeader.from_line(b'Filename: a\rb\tc.txt\n').filename, 'abc.txt')

    def test_from_line_without_prefix(self):
        self.assertEqual(FileHeader.from_line(b'garbage\n').filename, DEFAULT_FILENAME)
        self.assertEqual(FileHeader.from_line(b'Filename: \n').filename, DEFAULT_FILENAME)


class TestDownloadBridge(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.config = ShareConfig(bridge_host='127.0.0.1', connect_timeout=2, read_timeout=2)
        self.bridge = DownloadBridge(self.config)

    async def test_relays_header_and_body(self):
        async with RawShareServer(b'Filename: note.txt\nhello\x00world') as raw:
            result, err = await self.bridge.fetch('/download/%s' % raw.port)
        self.assertIsNone(err)
        try:
            self.assertEqual(result.code, raw.port)
            self.assertEqual(result.filename, 'note.txt')
            self.assertEqual(result.size, len(b'hello\x00world'))
            self.assertEqual(b''.join(result.iter_chunks(4)), b'hello\x00world')
        finally:
            result.cleanup()
        self.assertFalse(os.path.exists(result.path))

    async def test_missing_header_prefix_uses_default_name(self):
        async with RawShareServer(b'Something else\npayload') as raw:
            result, err = await self.bridge.fetch('/download/%s' % raw.port)
        self.assertIsNone(err)
        try:
            self.assertEqual(result.filename, DEFAULT_FILENAME)
            self.assertEqual(b''.join(result.iter_chunks()), b'payload')
        finally:
            result.cleanup()

    async def test_control_characters_dropped_from_name(self):
        async with RawShareServer(b'Filename: a\rb\x7f.txt\nbody') as raw:
            result, err = await self.bridge.fetch('/download/%s' % raw.port)
        self.assertIsNone(err)
        try:
            self.assertEqual(result.filename, 'ab.txt')
            self.assertEqual(b''.join(result.iter_chunks()), b'body')
        finally:
            result.cleanup()

    async def test_only_control_characters_uses_default_name(self):
        async with RawShareServer(b'Filename: \r\x01\nbody') as raw:
            result, err = await self.bridge.fetch('/download/%s' % raw.port)
        self.assertIsNone(err)
        try:
            self.assertEqual(result.filename, DEFAULT_FILENAME)
        finally:
            result.cleanup()

    async def test_silent_server_reports_timeout(self):
        bridge = DownloadBridge(ShareConfig(bridge_host='127.0.0.1', connect_timeout=2, read_timeout=0.2))
        async with RawShareServer(b'', hold_open=True) as raw:
            result, err = await bridge.fetch('/download/%s' % raw.port)
        self.assertIsNone(result)
        self.assertIsInstance(err, ResourceError)
        self.assertIn('TimeoutError', str(err))

    async def test_non_numeric_code(self):
        result, err = await self.bridge.fetch('/download/abc')
        self.assertIsNone(result)
        self.assertIsInstance(err, ClientInputError)

    async def test_nothing_listening_fails_fast(self):
        start = time.monotonic()
        result, err = await self.bridge.fetch('/download/%s' % get_free_port())
        self.assertIsNone(result)
        self.assertIsInstance(err, ResourceError)
        self.assertLess(time.monotonic() - start, self.config.connect_timeout + 1)


if __name__ == '__main__':
    unittest.main()
