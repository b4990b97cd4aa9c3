#!/usr/bin/env python3
"""
Share Server

Runs the HTTP API that turns uploads into one-shot download codes.

Usage:
    safeshare-server [--listen-ip IP] [--listen-port PORT] [--upload-dir DIR]

Example:
    safeshare-server --listen-port 8080 -v
    curl -F "file=@note.txt" http://127.0.0.1:8080/upload      -> {"port": 4821}
    curl -OJ http://127.0.0.1:8080/download/4821
"""

import asyncio
import logging

from safeshare import logger
from safeshare.common.config import ShareConfig, DEFAULT_CHUNK_SIZE, DEFAULT_MAX_UPLOAD_SIZE
from safeshare.server import ShareServer
from safeshare._version import __banner__


async def amain(args):
	try:
		config = ShareConfig.from_args(args)
		if args.verbose >= 1:
			logger.setLevel(logging.DEBUG)

		log_callback = None
		if args.verbose >= 2:
			async def log_callback(msg):
				print(f"[SHARE-SERVER] {msg}")

		if args.silent is False:
			print(__banner__)
			print('Staging uploads in: %s' % config.upload_dir)

		server = ShareServer(config, log_callback = log_callback)
		await server.run()

	except Exception as e:
		print(f"Server error: {e}")

def main():
	import argparse
	parser = argparse.ArgumentParser(description='One-shot file sharing server (HTTP upload, code based download)')
	parser.add_argument('--listen-ip', default = '127.0.0.1', help='HTTP API listen IP')
	parser.add_argument('--listen-port', type = int, default = 8080, help='HTTP API listen port')
	parser.add_argument('--share-ip', default = '0.0.0.0', help='IP the per-code socket servers bind to')
	parser.add_argument('--bridge-host', default = '127.0.0.1', help='Host the download bridge connects to')
	parser.add_argument('--upload-dir', help='Staging directory (default: <tempdir>/safeshare-uploads)')
	parser.add_argument('--code-min', type = int, default = 1024, help='Lowest share code / port')
	parser.add_argument('--code-max', type = int, default = 9999, help='Highest share code / port')
	parser.add_argument('--chunk-size', type = int, default = DEFAULT_CHUNK_SIZE, help='Socket transfer chunk size')
	parser.add_argument('--accept-timeout', type = int, default = 600, help='Seconds a code waits for its download, 0 = forever')
	parser.add_argument('--max-upload-size', type = int, default = DEFAULT_MAX_UPLOAD_SIZE, help='Maximum upload size in bytes')
	parser.add_argument('--keep-files', action='store_true', help='Do not delete staged files after they were served')
	parser.add_argument('-v', '--verbose', action='count', default=0, help='Verbosity')
	parser.add_argument('-s', '--silent', action='store_true', help = 'dont print banner')

	args = parser.parse_args()

	if args.listen_port < 0 or args.listen_port > 65535:
		parser.error(f"Port must be between 0 and 65535, got {args.listen_port}")

	try:
		asyncio.run(amain(args))
	except KeyboardInterrupt:
		print("\nServer stopped by user")

if __name__ == '__main__':
	main()
