import asyncio


class UniConnection:
	def __init__(self, reader:asyncio.StreamReader, writer:asyncio.StreamWriter, buffer_size:int = 65535, peer_ip:str = None, peer_port:int = None):
		self.reader = reader
		self.writer = writer
		self.buffer_size = buffer_size
		self.peer_ip = peer_ip
		self.peer_port = peer_port
		self.closing = False

	async def __aenter__(self):
		return self

	async def __aexit__(self, exc_type, exc, tb):
		await self.close()

	def get_extra_info(self, name, default=None):
		if name == 'peername' and self.peer_ip is not None:
			return (self.peer_ip, self.peer_port)

		if hasattr(self.writer, 'get_extra_info'):
			return self.writer.get_extra_info(name, default)

		return default

	def get_peer_str(self):
		peer = self.get_extra_info('peername')
		if peer is None:
			return '?'
		return '%s:%s' % (peer[0], peer[1])

	async def close(self):
		if self.closing is True:
			return
		self.closing = True
		if self.writer is not None:
			self.writer.close()
			try:
				await self.writer.wait_closed()
			except (ConnectionError, OSError):
				# peer went away first, nothing left to flush
				pass

	async def write(self, data):
		self.writer.write(data)
		await self.writer.drain()

	async def read_one(self, timeout = None):
		"""Returns the next chunk of at most buffer_size bytes, b'' on EOF"""
		return await asyncio.wait_for(self.reader.read(self.buffer_size), timeout = timeout)

	async def readuntil(self, end = b'\n', timeout = None):
		"""
		Reads until (and including) the separator.
		On EOF before the separator the partial data is returned as-is.
		"""
		try:
			return await asyncio.wait_for(self.reader.readuntil(end), timeout = timeout)
		except asyncio.IncompleteReadError as e:
			return e.partial

	async def read(self, timeout = None):
		while self.closing is False:
			data = await self.read_one(timeout = timeout)
			if data == b'':
				break
			yield data
