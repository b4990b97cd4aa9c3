import asyncio

from safeshare.common.config import ShareConfig
from safeshare.httpserver import HTTPServer
from safeshare.handler import ShareHandler
from safeshare.sharer import FileSharer
from safeshare.bridge import DownloadBridge
from safeshare import logger


class ShareServer:
	"""
	The whole share service: HTTP API, code registry and one-shot servers.
	The registry lives exactly as long as this object is started.
	"""
	def __init__(self, config:ShareConfig = None, log_callback = None):
		self.config = config
		if self.config is None:
			self.config = ShareConfig()
		self.log_callback = log_callback
		self.sharer:FileSharer = None
		self.bridge = DownloadBridge(self.config)
		self.http_server:HTTPServer = None
		self.serve_task = None

	@property
	def port(self):
		if self.http_server is None:
			return self.config.listen_port
		return self.http_server.port

	async def __aenter__(self):
		_, err = await self.start()
		if err is not None:
			raise err
		return self

	async def __aexit__(self, exc_type, exc, tb):
		await self.terminate()

	async def start(self):
		"""Binds the HTTP API and starts serving in the background. Returns (True, None) or (None, err)"""
		try:
			self.config.ensure_upload_dir()
			self.sharer = FileSharer(self.config)
			handler_factory = lambda: ShareHandler(self.sharer, self.bridge, self.config, print_cb = self.log_callback)
			self.http_server = HTTPServer(
				handler_factory,
				self.config.get_listen_target(),
				log_callback = self.log_callback,
				client_timeout = self.config.client_timeout
			)
			_, err = await self.http_server.start()
			if err is not None:
				raise err
			self.serve_task = asyncio.create_task(self.http_server.serve())
			logger.info('API server started on %s:%s' % (self.config.listen_ip, self.port))
			return True, None
		except Exception as e:
			return None, e

	async def run(self):
		_, err = await self.start()
		if err is not None:
			raise err
		try:
			await self.serve_task
		finally:
			await self.terminate()

	async def terminate(self):
		if self.http_server is not None:
			await self.http_server.terminate()
		if self.serve_task is not None:
			self.serve_task.cancel()
			await asyncio.gather(self.serve_task, return_exceptions=True)
			self.serve_task = None
		if self.sharer is not None:
			await self.sharer.terminate()
		logger.info('API server stopped')
