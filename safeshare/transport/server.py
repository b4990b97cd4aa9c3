import asyncio

from safeshare.transport.target import UniTarget, UniProto
from safeshare.transport.connection import UniConnection
from safeshare import logger


class UniServer:
	def __init__(self, target:UniTarget, buffer_size:int = 65535):
		self.target = target
		self.buffer_size = buffer_size
		self.connection_queue = asyncio.Queue()
		self.server = None
		self.closed_evt = asyncio.Event()

	@property
	def port(self):
		"""The port actually bound (differs from target.port when it was 0)"""
		if self.server is None or len(self.server.sockets) == 0:
			return self.target.port
		return self.server.sockets[0].getsockname()[1]

	async def __handle_connection(self, reader, writer):
		connection = UniConnection(reader, writer, self.buffer_size)
		if self.closed_evt.is_set():
			# raced in right before the listener went away
			await connection.close()
			return
		await self.connection_queue.put(connection)

	async def start(self):
		"""Binds the listening socket. Returns (True, None) or (None, err)"""
		if self.server is not None:
			return True, None
		try:
			if self.target.protocol != UniProto.SERVER_TCP:
				raise Exception('Unknown protocol "%s"' % self.target.protocol)
			self.server = await asyncio.start_server(
				self.__handle_connection,
				self.target.get_ip_or_hostname(),
				self.target.port
			)
			logger.debug('[SERVER] Listening on %s:%s' % (self.target.get_ip_or_hostname(), self.port))
			return True, None
		except Exception as e:
			return None, e

	async def accept(self, timeout = None):
		"""Waits for the next inbound connection"""
		return await asyncio.wait_for(self.connection_queue.get(), timeout = timeout)

	async def serve(self):
		try:
			_, err = await self.start()
			if err is not None:
				raise err
			while self.server.is_serving():
				connection = await self.connection_queue.get()
				yield connection
		finally:
			await self.close()

	async def close(self):
		self.closed_evt.set()
		if self.server is not None:
			self.server.close()
		while not self.connection_queue.empty():
			connection = self.connection_queue.get_nowait()
			await connection.close()
