import asyncio

class HTTPResponse:
	def __init__(self):
		self.version = None
		self.status = None
		self.reason = None
		self.headers = {}
		self.headers_upper = {}
		self.data = None

	def get_header(self, name, default = None):
		return self.headers_upper.get(name.upper(), default)

	@staticmethod
	async def from_streamreader(reader, timeout = None):
		try:
			resp = HTTPResponse()

			#reading headers
			temp = await asyncio.wait_for(reader.readuntil(b'\r\n\r\n'), timeout = timeout)
			temp = temp.split(b'\r\n')[:-1]
			version, status, reason = (temp[0].split(b' ', 2) + [b''])[:3]
			resp.version = version.decode()
			resp.status = int(status.decode())
			resp.reason = reason.decode()

			for hdr_raw in temp[1:]:
				if hdr_raw.strip() == b'':
					continue
				key_raw, value_raw = hdr_raw.split(b':', 1)
				key = key_raw.decode()
				value = value_raw.strip().decode('utf-8', errors='replace')

				resp.headers[key] = value
				resp.headers_upper[key.upper()] = value

			if 'CONTENT-LENGTH' in resp.headers_upper:
				rem_len = int(resp.headers_upper['CONTENT-LENGTH'])
				resp.data = await asyncio.wait_for(reader.readexactly(rem_len), timeout = timeout)

			return resp, None

		except Exception as e:
			return None, e

class HTTPRequest:
	def __init__(self):
		self.method = None
		self.uri = None
		self.version = 'HTTP/1.1'
		self.headers = {}
		self.data = None

	@staticmethod
	def construct(method, uri, host, data = None, headers = None):
		req = HTTPRequest()
		req.method = method
		req.uri = uri
		req.headers['Host'] = host
		if headers is not None:
			req.headers.update(headers)
		if data is not None:
			req.headers['Content-Length'] = str(len(data))
		req.headers['Connection'] = 'close'
		req.data = data
		return req

	def __str__(self):
		t = '%s %s %s\r\n' % (self.method, self.uri, self.version)
		for x in self.headers:
			t += '%s: %s\r\n' % (x, self.headers[x])
		t += '\r\n'
		if self.data is not None:
			t += '<DATA AVAILABLE>'
		return t

	def to_bytes(self):
		t = '%s %s %s\r\n' % (self.method, self.uri, self.version)
		for x in self.headers:
			t += '%s: %s\r\n' % (x, self.headers[x])
		t += '\r\n'
		t = t.encode()
		if self.data is not None:
			t += self.data
		return t
