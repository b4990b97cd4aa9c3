
# Raw socket handshake sent by the one-shot file server before the file bytes:
#   Filename: <name>\n<raw bytes until EOF>

FILENAME_PREFIX = 'Filename: '
DEFAULT_FILENAME = 'downloaded-file'

def strip_control_chars(name:str):
	"""Drops C0 controls and DEL, neither may appear in a header line"""
	return ''.join(c for c in name if ord(c) >= 0x20 and ord(c) != 0x7f)

class FileHeader:
	def __init__(self, filename:str = None):
		self.filename = filename

	@staticmethod
	def from_line(line:bytes):
		"""Any line without the expected prefix degrades to the default name"""
		o = FileHeader(DEFAULT_FILENAME)
		text = line.decode('utf-8', errors='replace').strip()
		if text.startswith(FILENAME_PREFIX):
			name = strip_control_chars(text[len(FILENAME_PREFIX):]).strip()
			if name:
				o.filename = name
		return o

	@staticmethod
	async def from_connection(connection, timeout = None):
		try:
			line = await connection.readuntil(b'\n', timeout = timeout)
			return FileHeader.from_line(line), None
		except Exception as e:
			return None, e

	def to_bytes(self):
		name = strip_control_chars(self.filename)
		return ('%s%s\n' % (FILENAME_PREFIX, name)).encode('utf-8')

	def __str__(self):
		return '%s%s' % (FILENAME_PREFIX, self.filename)
