import re
import json

from safeshare.transport.target import UniTarget
from safeshare.transport.client import UniClient
from safeshare.protocol.http import HTTPRequest, HTTPResponse
from safeshare.protocol.multipart import encode_multipart, DEFAULT_CONTENT_TYPE
from safeshare.protocol.fileheader import DEFAULT_FILENAME


class ShareHTTPClient:
	"""Minimal client for the share server's HTTP API"""
	def __init__(self, target:UniTarget):
		self.target = target

	async def request(self, method:str, uri:str, data:bytes = None, headers:dict = None):
		"""Returns (HTTPResponse, None) or (None, err)"""
		try:
			connection = await UniClient(self.target).connect()
			async with connection:
				host = '%s:%s' % (self.target.get_hostname_or_ip(), self.target.port)
				req = HTTPRequest.construct(method, uri, host, data = data, headers = headers)
				await connection.write(req.to_bytes())
				resp, err = await HTTPResponse.from_streamreader(connection.reader, timeout = self.target.timeout)
				if err is not None:
					raise err
				return resp, None
		except Exception as e:
			return None, e

	async def upload(self, file_name:str, content:bytes, content_type:str = DEFAULT_CONTENT_TYPE):
		"""Returns (code, None) or (None, err)"""
		try:
			body, mp_content_type = encode_multipart(file_name, content, content_type = content_type)
			resp, err = await self.request('POST', '/upload', data = body, headers = {'Content-Type': mp_content_type})
			if err is not None:
				raise err
			if resp.status != 200:
				raise Exception('Upload failed with HTTP %s: %s' % (resp.status, (resp.data or b'').decode(errors='replace')))
			return json.loads(resp.data)['port'], None
		except Exception as e:
			return None, e

	async def download(self, code):
		"""Returns ((filename, data), None) or (None, err)"""
		try:
			resp, err = await self.request('GET', '/download/%s' % code)
			if err is not None:
				raise err
			if resp.status != 200:
				raise Exception('Download failed with HTTP %s: %s' % (resp.status, (resp.data or b'').decode(errors='replace')))
			filename = DEFAULT_FILENAME
			m = re.search(r'filename="([^"]*)"', resp.get_header('Content-Disposition', ''))
			if m is not None and m.group(1):
				filename = m.group(1)
			return (filename, resp.data), None
		except Exception as e:
			return None, e
