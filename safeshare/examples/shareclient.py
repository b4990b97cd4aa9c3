#!/usr/bin/env python3
"""
Share Client

Talks to a running share server.

Usage:
    safeshare-client upload note.txt                 # prints the code
    safeshare-client download 4821 -o ./incoming     # via the HTTP bridge
    safeshare-client fetch 4821 --host 10.0.0.5      # straight from the code's socket
"""

import os
import asyncio
import logging
import mimetypes

from safeshare import logger
from safeshare.transport.target import UniTarget, UniProto
from safeshare.httpclient import ShareHTTPClient
from safeshare.client import ShareClient


async def amain(args):
	try:
		if args.verbose >= 1:
			logger.setLevel(logging.DEBUG)

		if args.command == 'upload':
			with open(args.file, 'rb') as f:
				content = f.read()
			content_type, _ = mimetypes.guess_type(args.file)
			client = ShareHTTPClient(UniTarget.from_url(args.url, UniProto.CLIENT_TCP))
			code, err = await client.upload(os.path.basename(args.file), content, content_type or 'application/octet-stream')
			if err is not None:
				raise err
			print(code)

		elif args.command == 'download':
			client = ShareHTTPClient(UniTarget.from_url(args.url, UniProto.CLIENT_TCP))
			res, err = await client.download(args.code)
			if err is not None:
				raise err
			filename, data = res
			path = os.path.join(args.output, os.path.basename(filename))
			with open(path, 'wb') as f:
				f.write(data)
			print(path)

		elif args.command == 'fetch':
			target = UniTarget(args.host, args.code, UniProto.CLIENT_TCP, timeout = args.timeout)
			path, err = await ShareClient(target, read_timeout = args.timeout).fetch(args.output)
			if err is not None:
				raise err
			print(path)

		return 0
	except Exception as e:
		print(f"Error: {e}")
		return 1

def main():
	import argparse
	import sys

	parser = argparse.ArgumentParser(description='One-shot file sharing client')
	parser.add_argument('-v', '--verbose', action='count', default=0, help='Verbosity')
	subparsers = parser.add_subparsers(dest = 'command', required = True)

	upload = subparsers.add_parser('upload', help='Upload a file, prints its code')
	upload.add_argument('file', help='File to share')
	upload.add_argument('--url', default='http://127.0.0.1:8080', help='Share server URL')

	download = subparsers.add_parser('download', help='Download a code through the HTTP bridge')
	download.add_argument('code', type = int, help='Share code')
	download.add_argument('--url', default='http://127.0.0.1:8080', help='Share server URL')
	download.add_argument('-o', '--output', default='.', help='Output directory')

	fetch = subparsers.add_parser('fetch', help='Download a code directly from its socket server')
	fetch.add_argument('code', type = int, help='Share code')
	fetch.add_argument('--host', default='127.0.0.1', help='Host running the share server')
	fetch.add_argument('--timeout', type = int, default = 30, help='Connect / read timeout in seconds')
	fetch.add_argument('-o', '--output', default='.', help='Output directory')

	args = parser.parse_args()
	sys.exit(asyncio.run(amain(args)))

if __name__ == '__main__':
	main()
