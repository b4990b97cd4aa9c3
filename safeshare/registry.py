import enum
import random
import asyncio

from safeshare.common.exceptions import ResourceError
from safeshare import logger


class CodeState(enum.Enum):
	UNSERVED = 1 # allocated, no listener yet
	LISTENING = 2
	SERVING = 3
	SERVED = 4
	EXPIRED = 5

FINISHED_STATES = (CodeState.SERVED, CodeState.EXPIRED)

class FileRecord:
	def __init__(self, code:int, file_path:str):
		self.code = code
		self.file_path = file_path
		self.state = CodeState.UNSERVED

	def __repr__(self):
		return 'FileRecord(code=%s, file_path=%r, state=%s)' % (self.code, self.file_path, self.state.name)

class CodeRegistry:
	"""
	Maps share codes to staged files. Every read-modify-write goes through
	one asyncio.Lock, so generate-check-insert is a single atomic step.
	"""
	def __init__(self, code_range = (1024, 9999), code_generator = None):
		self.code_min, self.code_max = code_range
		self.code_generator = code_generator
		if self.code_generator is None:
			self.code_generator = lambda: random.randint(self.code_min, self.code_max)
		self.records = {}
		self.lock = asyncio.Lock()

	def __len__(self):
		return len(self.records)

	def __contains__(self, code):
		return code in self.records

	def capacity(self):
		return self.code_max - self.code_min + 1

	async def allocate(self, file_path:str) -> int:
		async with self.lock:
			if len(self.records) >= self.capacity():
				raise ResourceError(None, 'No free share codes left (%s active)' % len(self.records))
			while True:
				code = self.code_generator()
				if code not in self.records:
					self.records[code] = FileRecord(code, file_path)
					logger.debug('[REGISTRY] Code %s -> %s' % (code, file_path))
					return code

	def lookup(self, code:int):
		"""Returns the staged file path or None"""
		record = self.records.get(code)
		if record is None:
			return None
		return record.file_path

	def get(self, code:int):
		return self.records.get(code)

	async def transition(self, code:int, from_states, to_state:CodeState) -> bool:
		"""Moves a record to to_state only if it is currently in one of from_states"""
		async with self.lock:
			record = self.records.get(code)
			if record is None or record.state not in from_states:
				return False
			logger.debug('[REGISTRY] Code %s %s -> %s' % (code, record.state.name, to_state.name))
			record.state = to_state
			return True

	async def release(self, code:int):
		"""Removes a finished record, returns it (or None)"""
		async with self.lock:
			record = self.records.get(code)
			if record is None:
				return None
			if record.state not in FINISHED_STATES:
				record.state = CodeState.EXPIRED
			del self.records[code]
			return record

	async def clear(self):
		async with self.lock:
			records = list(self.records.values())
			self.records = {}
			for record in records:
				if record.state not in FINISHED_STATES:
					record.state = CodeState.EXPIRED
			return records
