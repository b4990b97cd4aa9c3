import os

from safeshare.transport.target import UniTarget
from safeshare.transport.client import UniClient
from safeshare.protocol.fileheader import FileHeader, DEFAULT_FILENAME
from safeshare.common.exceptions import ResourceError
from safeshare import logger


class ShareClient:
	"""Downloads a share code straight from its one-shot socket server"""
	def __init__(self, target:UniTarget, read_timeout = None, buffer_size:int = 65535):
		self.target = target
		self.read_timeout = read_timeout
		self.buffer_size = buffer_size

	async def receive(self, out_file):
		"""
		Reads the header line, then copies every remaining byte into out_file.
		Returns ((header, size), None) or (None, err)
		"""
		try:
			try:
				connection = await UniClient(self.target, self.buffer_size).connect()
			except Exception as e:
				raise ResourceError(e, 'Could not connect to port %s' % self.target.port)

			async with connection:
				header, err = await FileHeader.from_connection(connection, timeout = self.read_timeout)
				if err is not None:
					raise ResourceError(err, 'Could not read file header')
				logger.debug('[SHARECLIENT] %s' % header)

				size = 0
				try:
					async for data in connection.read(timeout = self.read_timeout):
						out_file.write(data)
						size += len(data)
				except Exception as e:
					raise ResourceError(e, 'Transfer interrupted after %s bytes' % size)
				return (header, size), None
		except Exception as e:
			return None, e

	async def fetch(self, directory = '.'):
		"""
		Saves the shared file into directory under the name announced by the server.
		Returns (path, None) or (None, err)
		"""
		part_path = os.path.join(directory, '.safeshare-%s.part' % self.target.port)
		try:
			with open(part_path, 'wb') as f:
				res, err = await self.receive(f)
			if err is not None:
				raise err
			header, size = res
			name = os.path.basename(header.filename) or DEFAULT_FILENAME
			path = os.path.join(directory, name)
			os.replace(part_path, path)
			logger.info('[SHARECLIENT] Saved %s (%s bytes)' % (path, size))
			return path, None
		except Exception as e:
			if os.path.exists(part_path):
				os.remove(part_path)
			return None, e
