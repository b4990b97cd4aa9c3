import os
import shutil
import asyncio

from safeshare.registry import CodeRegistry
from safeshare.fileserver import OneShotFileServer
from safeshare.common.config import ShareConfig
from safeshare.common.exceptions import ResourceError
from safeshare import logger


class FileSharer:
	"""
	Owns the code registry and every one-shot file server.
	Created when the HTTP API starts, terminate()-d when it stops.
	"""
	def __init__(self, config:ShareConfig, registry:CodeRegistry = None):
		self.config = config
		self.registry = registry
		if self.registry is None:
			self.registry = CodeRegistry(config.code_range)
		self.servers = {}
		self.server_tasks = {}

	async def offer_file(self, file_path:str):
		"""
		Registers the file and returns its code once the listener is bound.
		A code whose port cannot be bound is dropped and a fresh one is tried.
		Returns (code, None) or (None, err)
		"""
		err = None
		try:
			for _ in range(self.config.bind_attempts):
				code = await self.registry.allocate(file_path)
				_, err = await self.start_file_server(code)
				if err is None:
					return code, None
				logger.debug('[SHARER] Code %s unusable: %s' % (code, err))
				await self.registry.release(code)
			raise ResourceError(err, 'Could not start a file server')
		except Exception as e:
			return None, e

	async def start_file_server(self, code:int):
		"""Binds the one-shot server for code and runs it in the background"""
		try:
			if code in self.servers:
				raise ResourceError(None, 'File server for code %s was already started' % code)
			server = OneShotFileServer(self.registry, code, self.config)
			_, err = await server.start()
			if err is not None:
				raise err
			self.servers[code] = server
			self.server_tasks[code] = asyncio.create_task(self.__run_server(server))
			return True, None
		except Exception as e:
			return None, e

	async def __run_server(self, server:OneShotFileServer):
		try:
			state = await server.run()
			logger.debug('[SHARER] Code %s finished as %s' % (server.code, state.name))
		except asyncio.CancelledError:
			await server.close()
			raise
		except Exception as e:
			logger.info('[SHARER] File server for code %s failed: %s' % (server.code, e))
			await server.close()
		finally:
			self.servers.pop(server.code, None)
			self.server_tasks.pop(server.code, None)
			record = await self.registry.release(server.code)
			if record is not None:
				self.remove_staged_file(record.file_path)

	def remove_staged_file(self, file_path:str):
		if self.config.keep_files is True:
			return
		try:
			os.remove(file_path)
			# each upload is staged in its own directory
			parent = os.path.dirname(file_path)
			if os.path.abspath(os.path.dirname(parent)) == os.path.abspath(self.config.upload_dir):
				shutil.rmtree(parent, ignore_errors=True)
		except OSError as e:
			logger.debug('[SHARER] Could not remove %s: %s' % (file_path, e))

	async def terminate(self):
		tasks = list(self.server_tasks.values())
		for task in tasks:
			task.cancel()
		if len(tasks) > 0:
			await asyncio.gather(*tasks, return_exceptions=True)
		for record in await self.registry.clear():
			self.remove_staged_file(record.file_path)
		self.servers = {}
		self.server_tasks = {}
