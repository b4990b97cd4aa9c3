
NOT_FOUND = -1

def find(haystack:bytes, needle:bytes, start:int = 0) -> int:
	"""
	Byte-wise search for the first occurrence of needle at or after start.
	No decoding happens, so NUL bytes and arbitrary binary payloads are fine.
	Returns the index of the match or NOT_FOUND.
	"""
	if start < 0:
		start = 0
	if len(needle) == 0 or start + len(needle) > len(haystack):
		return NOT_FOUND
	return haystack.find(needle, start)
