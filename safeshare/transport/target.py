import enum
import ipaddress
from urllib.parse import urlparse, parse_qs


class UniProto(enum.Enum):
	CLIENT_TCP = 1
	SERVER_TCP = 6

class UniTarget:
	def __init__(self, ip:str, port:int, protocol:UniProto, timeout:int=5, hostname:str = None):
		self.hostname = hostname
		self.port = port
		self.protocol = protocol
		self.timeout = timeout

		try:
			ipaddress.ip_address(ip)
			self.ip = ip
		except ValueError:
			if ip is not None:
				self.hostname = ip
			self.ip = None

		if ip is None and hostname is None:
			raise Exception('Both IP and Hostname can\'t be none!')

	def get_ip_or_hostname(self):
		if self.ip is not None:
			return self.ip
		return self.hostname

	def get_hostname_or_ip(self):
		if self.hostname is not None:
			return self.hostname
		return self.ip

	@staticmethod
	def from_url(connection_url, protocol:UniProto, port:int = None):
		url_e = urlparse(connection_url)
		ip = url_e.hostname
		if url_e.port is None and port is None:
			raise Exception('Port must be provided!')
		if url_e.port and port is None:
			port = url_e.port

		timeout = 5
		if url_e.query:
			query = parse_qs(url_e.query)
			if 'timeout' in query:
				timeout = int(query['timeout'][0])

		return UniTarget(ip, port, protocol, timeout = timeout)

	def __str__(self):
		t = '==== UniTarget ====\r\n'
		for k in self.__dict__:
			t += '%s: %s\r\n' % (k, self.__dict__[k])
		return t
