import os
import json
import shutil
import uuid
import urllib.parse

from safeshare.httpserver import HTTPServerHandler, RequestBodyTooLarge
from safeshare.protocol.multipart import MultipartParser, get_boundary
from safeshare.common.exceptions import MultipartParseError
from safeshare.common.config import ShareConfig
from safeshare.sharer import FileSharer
from safeshare.bridge import DownloadBridge
from safeshare import logger

UNNAMED_FILE = 'unnamed-file'


def sanitize_upload_filename(filename):
    """
    Reduces a client supplied filename to a bare basename.

    Args:
        filename (str): Name from the multipart part header

    Returns:
        str: Safe name, 'unnamed-file' when nothing usable is left
    """
    if filename is None:
        return UNNAMED_FILE
    filename = filename.replace('\r', '').replace('\n', '').replace('\x00', '')
    filename = os.path.basename(filename.replace('\\', '/')).strip()
    if filename in ('', '.', '..'):
        return UNNAMED_FILE
    return filename


class ShareHandler(HTTPServerHandler):
    """
    HTTP API of the share server.

    Routes:
    - POST /upload           multipart upload, answers {"port": <code>}
    - GET  /download/<code>  relays the code's one-shot socket server
    - OPTIONS *              CORS preflight
    Anything else is 404.
    """

    def __init__(self, sharer:FileSharer, bridge:DownloadBridge, config:ShareConfig, print_cb=None):
        super().__init__()
        self.sharer = sharer
        self.bridge = bridge
        self.config = config
        self.print_cb = print_cb

    async def print(self, msg=''):
        logger.debug(msg)
        if self.print_cb is None:
            return
        await self.print_cb(msg)

    @staticmethod
    def get_header(event, name):
        name = name.lower().encode('ascii')
        for key, value in event.headers:
            if key.lower() == name:
                return value.decode('latin-1')
        return None

    @staticmethod
    def get_path(event):
        return urllib.parse.urlparse(event.target.decode('ascii')).path

    @staticmethod
    def is_download_path(path):
        return path == '/download' or path.startswith('/download/')

    async def do_GET(self, event):
        path = self.get_path(event)
        if self.is_download_path(path):
            return await self._handle_download(path)
        if path == '/upload':
            return await self.send_text(405, "Method not allowed")
        await self.send_text(404, "NOT FOUND")

    async def do_POST(self, event):
        path = self.get_path(event)
        if path == '/upload':
            return await self._handle_upload(event)
        if self.is_download_path(path):
            return await self.send_text(405, "Method not allowed")
        await self.send_text(404, "NOT FOUND")

    async def _handle_upload(self, event):
        """
        Reads the whole multipart body, stages the file and offers it.
        The code is only returned once its socket server is listening.
        """
        content_type = self.get_header(event, 'content-type')
        if content_type is None or not content_type.lower().startswith('multipart/form-data'):
            return await self.send_text(400, "Bad Request: Content-Type must be multipart/form-data")

        boundary = get_boundary(content_type)
        if boundary is None:
            return await self.send_text(400, "Bad Request: Missing boundary in Content-Type")

        content_length = self.get_header(event, 'content-length')
        if content_length is not None and content_length.isdigit() and int(content_length) > self.config.max_upload_size:
            return await self.send_text(413, "Upload too large", close=True)

        try:
            body = await self._wrapper.read_body(self.config.max_upload_size)
        except RequestBodyTooLarge as e:
            await self.print(f"[UPLOAD-VALIDATION] {e}")
            return await self.send_text(413, "Upload too large", close=True)

        try:
            result = MultipartParser(body, boundary).parse()
        except MultipartParseError as e:
            await self.print(f"[UPLOAD-PARSE] {e}")
            return await self.send_text(400, "Bad Request: Could not Parse File Content")

        file_path = None
        try:
            file_path = self._stage_file(result.file_name, result.content)
        except OSError as e:
            await self.print(f"[UPLOAD-DISK] Disk error: {e}")
            return await self.send_text(500, f"server error: {e}")

        code, err = await self.sharer.offer_file(file_path)
        if err is not None:
            await self.print(f"[UPLOAD-ERROR] {err}")
            self.sharer.remove_staged_file(file_path)
            return await self.send_text(500, f"server error: {err}")

        logger.info('[UPLOAD] %s (%s, %s bytes) -> code %s' % (
            os.path.basename(file_path), result.content_type, len(result.content), code))
        await self.send_response(200, json.dumps({"port": code}), 'application/json')

    def _stage_file(self, file_name, content):
        """Writes the upload into its own directory so the basename survives as-is"""
        upload_dir = os.path.join(self.config.ensure_upload_dir(), uuid.uuid4().hex)
        os.makedirs(upload_dir)
        file_path = os.path.join(upload_dir, sanitize_upload_filename(file_name))
        try:
            with open(file_path, 'wb') as f:
                f.write(content)
        except OSError:
            shutil.rmtree(upload_dir, ignore_errors=True)
            raise
        return file_path

    async def _handle_download(self, path):
        result, err = await self.bridge.fetch(path)
        if err is not None:
            await self.print(f"[DOWNLOAD-ERROR] {err}")
            return await self.send_text(400, f"error downloading the file: {err}")

        try:
            filename = result.filename.replace('"', '')
            headers = [
                ("Content-Disposition", f'attachment; filename="{filename}"'.encode('utf-8')),
                ("Content-Type", b"application/octet-stream"),
            ]
            await self.send_file(200, result.iter_chunks(self.config.chunk_size), result.size, headers)
            logger.info('[DOWNLOAD] Code %s relayed as %s (%s bytes)' % (result.code, result.filename, result.size))
        finally:
            result.cleanup()
