"""
Server configuration.

Every knob of the share server lives here so handlers, the sharer and the
bridge can be handed one object instead of a dozen keyword arguments.
"""

import os
import tempfile

from safeshare.transport.target import UniTarget, UniProto

DEFAULT_LISTEN_IP = '127.0.0.1'
DEFAULT_LISTEN_PORT = 8080
DEFAULT_CODE_RANGE = (1024, 9999)
DEFAULT_CHUNK_SIZE = 4096
DEFAULT_MAX_UPLOAD_SIZE = 2*1024*1024*1024
UPLOAD_DIR_NAME = 'safeshare-uploads'


class ShareConfig:
    """Share server configuration."""

    def __init__(self, listen_ip=DEFAULT_LISTEN_IP, listen_port=DEFAULT_LISTEN_PORT, share_ip='0.0.0.0',
                 bridge_host='127.0.0.1', upload_dir=None, code_range=DEFAULT_CODE_RANGE,
                 chunk_size=DEFAULT_CHUNK_SIZE, accept_timeout=600, connect_timeout=5, read_timeout=30,
                 client_timeout=30, max_upload_size=DEFAULT_MAX_UPLOAD_SIZE, bind_attempts=5,
                 keep_files=False):
        self.listen_ip = listen_ip
        self.listen_port = listen_port

        # one-shot listeners bind here, the bridge connects there
        self.share_ip = share_ip
        self.bridge_host = bridge_host

        if upload_dir is None:
            upload_dir = os.path.join(tempfile.gettempdir(), UPLOAD_DIR_NAME)
        self.upload_dir = upload_dir

        self.code_range = tuple(code_range)
        self.chunk_size = chunk_size

        # None means wait forever
        self.accept_timeout = accept_timeout
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.client_timeout = client_timeout

        self.max_upload_size = max_upload_size
        self.bind_attempts = bind_attempts
        self.keep_files = keep_files

        self.validate()

    def validate(self):
        low, high = self.code_range
        if low < 1 or high > 65535 or low > high:
            raise ValueError(f"Invalid code range: {low}-{high}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.bind_attempts < 1:
            raise ValueError(f"bind_attempts must be at least 1, got {self.bind_attempts}")

    def ensure_upload_dir(self):
        os.makedirs(self.upload_dir, exist_ok=True)
        return self.upload_dir

    def get_listen_target(self):
        return UniTarget(self.listen_ip, self.listen_port, UniProto.SERVER_TCP)

    def get_share_target(self, code):
        return UniTarget(self.share_ip, code, UniProto.SERVER_TCP)

    def get_bridge_target(self, code):
        return UniTarget(self.bridge_host, code, UniProto.CLIENT_TCP, timeout=self.connect_timeout)

    @staticmethod
    def from_args(args):
        """Builds a config from parsed argparse arguments."""
        accept_timeout = args.accept_timeout
        if accept_timeout is not None and accept_timeout <= 0:
            accept_timeout = None
        return ShareConfig(
            listen_ip=args.listen_ip,
            listen_port=args.listen_port,
            share_ip=args.share_ip,
            bridge_host=args.bridge_host,
            upload_dir=args.upload_dir,
            code_range=(args.code_min, args.code_max),
            chunk_size=args.chunk_size,
            accept_timeout=accept_timeout,
            max_upload_size=args.max_upload_size,
            keep_files=args.keep_files,
        )

    def __str__(self):
        t = '==== ShareConfig ====\r\n'
        for k in self.__dict__:
            t += '%s: %s\r\n' % (k, self.__dict__[k])
        return t
