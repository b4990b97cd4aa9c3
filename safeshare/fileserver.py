import os
import asyncio

from safeshare.transport.server import UniServer
from safeshare.transport.connection import UniConnection
from safeshare.protocol.fileheader import FileHeader
from safeshare.registry import CodeRegistry, CodeState
from safeshare.common.config import ShareConfig
from safeshare.common.exceptions import ResourceError
from safeshare import logger


class OneShotFileServer:
	"""
	Exposes one registered file on the port equal to its code.
	Idle -> Listening (start) -> Serving (serve) -> Closed.
	Exactly one connection is accepted, then the listener goes away.
	"""
	def __init__(self, registry:CodeRegistry, code:int, config:ShareConfig):
		self.registry = registry
		self.code = code
		self.config = config
		self.target = config.get_share_target(code)
		self.server:UniServer = None
		self.connection:UniConnection = None
		self.sender_task = None
		self.bytes_sent = 0

	@property
	def port(self):
		if self.server is None:
			return self.code
		return self.server.port

	async def start(self):
		"""Binds the listener. Returns (True, None) or (None, err)"""
		try:
			file_path = self.registry.lookup(self.code)
			if file_path is None:
				raise ResourceError(None, 'No file is associated with code %s' % self.code)

			if await self.registry.transition(self.code, (CodeState.UNSERVED,), CodeState.LISTENING) is False:
				raise ResourceError(None, 'File server for code %s was already started' % self.code)

			self.server = UniServer(self.target, self.config.chunk_size)
			_, err = await self.server.start()
			if err is not None:
				await self.registry.transition(self.code, (CodeState.LISTENING,), CodeState.EXPIRED)
				self.server = None
				raise ResourceError(err, 'Could not listen on port %s' % self.code)

			logger.info('[FILESERVER] Serving %s on port %s' % (os.path.basename(file_path), self.port))
			return True, None
		except Exception as e:
			return None, e

	async def serve(self):
		"""
		Waits for the single download connection and hands it to the sender task.
		Returns False if nobody connected within accept_timeout.
		"""
		if self.server is None:
			raise Exception('File server for code %s is not listening!' % self.code)
		try:
			try:
				connection = await self.server.accept(timeout = self.config.accept_timeout)
			except asyncio.TimeoutError:
				logger.info('[FILESERVER] Code %s expired, nobody connected in %ss' % (self.code, self.config.accept_timeout))
				await self.registry.transition(self.code, (CodeState.LISTENING,), CodeState.EXPIRED)
				return False
		finally:
			# one connection only, the port is freed right away
			await self.server.close()

		logger.info('[FILESERVER] Client connected to code %s from %s' % (self.code, connection.get_peer_str()))
		await self.registry.transition(self.code, (CodeState.LISTENING,), CodeState.SERVING)
		self.connection = connection
		self.sender_task = asyncio.create_task(self.__send_file(connection))
		return True

	async def run(self):
		"""serve() and wait for the transfer to finish. Returns the final state"""
		served = await self.serve()
		if served is True:
			await self.sender_task
		record = self.registry.get(self.code)
		if record is None:
			return CodeState.EXPIRED
		return record.state

	async def __send_file(self, connection:UniConnection):
		file_path = self.registry.lookup(self.code)
		try:
			if file_path is None:
				raise Exception('Record for code %s disappeared' % self.code)
			header = FileHeader(os.path.basename(file_path))
			await connection.write(header.to_bytes())
			with open(file_path, 'rb') as f:
				while True:
					chunk = f.read(self.config.chunk_size)
					if not chunk:
						break
					await connection.write(chunk)
					self.bytes_sent += len(chunk)

			await self.registry.transition(self.code, (CodeState.SERVING,), CodeState.SERVED)
			logger.info('[FILESERVER] File %s (%s bytes) sent to %s' % (header.filename, self.bytes_sent, connection.get_peer_str()))
		except asyncio.CancelledError:
			await self.registry.transition(self.code, (CodeState.SERVING,), CodeState.EXPIRED)
			raise
		except Exception as e:
			logger.info('[FILESERVER] Error sending code %s to client: %s' % (self.code, e))
			await self.registry.transition(self.code, (CodeState.SERVING,), CodeState.EXPIRED)
		finally:
			await connection.close()

	async def close(self):
		if self.server is not None:
			await self.server.close()
		if self.sender_task is not None and not self.sender_task.done():
			self.sender_task.cancel()
		if self.connection is not None:
			await self.connection.close()
