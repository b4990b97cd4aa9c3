"""
Single-part multipart/form-data parser.

Works on the complete request body held in memory. Only the first file part
is extracted; nested boundaries and percent-encoded filenames are not
supported. A payload that itself contains the final terminator sequence
(CRLF + '--' + boundary + '--') gets cut short at that point.
"""

import os
import re

from safeshare.protocol.scanner import find, NOT_FOUND
from safeshare.common.exceptions import MultipartParseError

DEFAULT_CONTENT_TYPE = 'application/octet-stream'

FILENAME_MARKER = b'filename="'
CONTENT_TYPE_MARKER = b'content-type:'
HEADER_END_MARKER = b'\r\n\r\n'
LINE_END = b'\r\n'


class ParsedUpload:
    def __init__(self, file_name, content, content_type=DEFAULT_CONTENT_TYPE):
        self.file_name = file_name
        self.content = content
        self.content_type = content_type

    def __repr__(self):
        return 'ParsedUpload(file_name=%r, content_type=%r, size=%d)' % (
            self.file_name, self.content_type, len(self.content))


def get_boundary(content_type):
    """
    Extracts the boundary token from a Content-Type header value.

    Args:
        content_type (str): e.g. 'multipart/form-data; boundary=XYZ'

    Returns:
        str: the boundary, or None if the header is not multipart or has no boundary
    """
    if content_type is None or not content_type.lower().startswith('multipart/form-data'):
        return None
    boundary_match = re.search(r'boundary=([^;]+)', content_type)
    if not boundary_match:
        return None
    boundary = boundary_match.group(1).strip().strip('"')
    if not boundary:
        return None
    return boundary


class MultipartParser:
    def __init__(self, data, boundary):
        self.data = data
        self.boundary = boundary.encode('ascii') if isinstance(boundary, str) else boundary

    def parse(self):
        """
        Returns a ParsedUpload or raises MultipartParseError.
        There are no partial results.
        """
        data = self.data

        filename_start = find(data, FILENAME_MARKER)
        if filename_start == NOT_FOUND:
            raise MultipartParseError('Missing filename')
        filename_start += len(FILENAME_MARKER)

        filename_end = find(data, b'"', filename_start)
        if filename_end == NOT_FOUND:
            raise MultipartParseError('Unterminated filename')
        file_name = data[filename_start:filename_end].decode('utf-8', errors='replace')

        header_end = find(data, HEADER_END_MARKER, filename_end)
        if header_end == NOT_FOUND:
            raise MultipartParseError('Missing part header terminator')
        content_start = header_end + len(HEADER_END_MARKER)

        content_type = self._find_content_type(filename_end, header_end + len(LINE_END))

        content_end = find(data, LINE_END + b'--' + self.boundary + b'--', content_start)
        if content_end == NOT_FOUND:
            content_end = find(data, LINE_END + b'--' + self.boundary, content_start)
        if content_end == NOT_FOUND:
            raise MultipartParseError('Terminating boundary not found')
        if content_end <= content_start:
            raise MultipartParseError('Empty file content')

        return ParsedUpload(file_name, bytes(data[content_start:content_end]), content_type)

    def _find_content_type(self, start, end):
        # header names are case-insensitive, offsets survive lower()
        headers = self.data[start:end].lower()
        pos = find(headers, CONTENT_TYPE_MARKER)
        if pos == NOT_FOUND:
            return DEFAULT_CONTENT_TYPE
        value_start = start + pos + len(CONTENT_TYPE_MARKER)
        value_end = find(self.data, LINE_END, value_start)
        if value_end == NOT_FOUND or value_end > end:
            return DEFAULT_CONTENT_TYPE
        content_type = self.data[value_start:value_end].decode('ascii', errors='replace').strip()
        return content_type or DEFAULT_CONTENT_TYPE


def encode_multipart(file_name, content, boundary=None, content_type=DEFAULT_CONTENT_TYPE, field_name='file'):
    """
    Builds a single-file multipart/form-data body.

    Returns:
        tuple: (body bytes, Content-Type header value)
    """
    if boundary is None:
        boundary = '----safeshare' + os.urandom(12).hex()
    body = b''
    body += f'--{boundary}\r\n'.encode('ascii')
    body += f'Content-Disposition: form-data; name="{field_name}"; filename="{file_name}"\r\n'.encode('utf-8')
    body += f'Content-Type: {content_type}\r\n\r\n'.encode('ascii')
    body += content
    body += f'\r\n--{boundary}--\r\n'.encode('ascii')
    return body, f'multipart/form-data; boundary={boundary}'
