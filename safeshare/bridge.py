import os
import tempfile

from safeshare.client import ShareClient
from safeshare.common.config import ShareConfig
from safeshare.common.exceptions import ClientInputError, ResourceError
from safeshare import logger


class DownloadResult:
	def __init__(self, code:int, filename:str, path:str, size:int):
		self.code = code
		self.filename = filename
		self.path = path
		self.size = size

	def iter_chunks(self, chunk_size:int = 4096):
		with open(self.path, 'rb') as f:
			while True:
				chunk = f.read(chunk_size)
				if not chunk:
					break
				yield chunk

	def cleanup(self):
		try:
			os.remove(self.path)
		except FileNotFoundError:
			pass

class DownloadBridge:
	"""
	Turns a share code into an HTTP-servable file: connects to the code's
	one-shot server and drains it into a temporary file first, because the
	Content-Length is unknown until the socket hits EOF.
	"""
	def __init__(self, config:ShareConfig):
		self.config = config

	@staticmethod
	def parse_code(path:str) -> int:
		code_text = path.split('?', 1)[0].rstrip('/').rsplit('/', 1)[-1]
		try:
			code = int(code_text)
		except ValueError:
			raise ClientInputError('Invalid code: %r' % code_text)
		if code < 1 or code > 65535:
			raise ClientInputError('Invalid code: %r' % code_text)
		return code

	async def fetch(self, path:str):
		"""Returns (DownloadResult, None) or (None, err). The caller owns the temp file"""
		tmp_path = None
		try:
			code = DownloadBridge.parse_code(path)
			client = ShareClient(
				self.config.get_bridge_target(code),
				read_timeout = self.config.read_timeout,
				buffer_size = self.config.chunk_size
			)
			fd, tmp_path = tempfile.mkstemp(prefix='download-', suffix='.tmp')
			with os.fdopen(fd, 'wb') as f:
				res, err = await client.receive(f)
			if err is not None:
				raise err
			header, size = res
			logger.debug('[BRIDGE] Code %s relayed %s (%s bytes)' % (code, header.filename, size))
			return DownloadResult(code, header.filename, tmp_path, size), None
		except Exception as e:
			if tmp_path is not None and os.path.exists(tmp_path):
				os.remove(tmp_path)
			if not isinstance(e, (ClientInputError, ResourceError)):
				e = ResourceError(e, 'Transfer failed')
			return None, e
