import asyncio

from safeshare.transport.target import UniTarget, UniProto
from safeshare.transport.connection import UniConnection
from safeshare import logger


class UniClient:
	def __init__(self, target:UniTarget, buffer_size:int = 65535):
		self.target = target
		self.buffer_size = buffer_size

	async def connect(self):
		if self.target.protocol != UniProto.CLIENT_TCP:
			raise Exception('Unknown protocol "%s"' % self.target.protocol)

		logger.debug('[CLIENT] Connecting to %s:%s' % (self.target.get_ip_or_hostname(), self.target.port))
		reader, writer = await asyncio.wait_for(
			asyncio.open_connection(self.target.get_ip_or_hostname(), self.target.port),
			timeout = self.target.timeout
		)
		return UniConnection(reader, writer, self.buffer_size)
