
class ShareError(Exception):
	pass

class ClientInputError(ShareError):
	"""Bad request from the caller. Surfaced as 4xx, never retried"""
	pass

class MultipartParseError(ClientInputError):
	def __init__(self, message="Could not Parse File Content"):
		self.message = message
		super().__init__(self.message)

class ProtocolViolation(ClientInputError):
	pass

class ResourceError(ShareError):
	def __init__(self, innerexception, message="Resource failure! See innerexception for more details"):
		self.innerexception = innerexception
		self.message = message
		super().__init__(self.message)

	def __str__(self):
		if self.innerexception is None:
			return self.message
		# timeouts carry no message of their own
		inner = str(self.innerexception) or repr(self.innerexception)
		return '%s: %s' % (self.message, inner)
