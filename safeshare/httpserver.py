from safeshare.transport.target import UniTarget
from safeshare.transport.connection import UniConnection
from safeshare.transport.server import UniServer
from safeshare import logger
import asyncio
import traceback
import datetime
import email.utils
import h11

from safeshare._version import __version__

SERVER_IDENT = " ".join(
    [f"safeshare/{__version__}", h11.PRODUCT_ID]
).encode("ascii")

CORS_HEADERS = [
    ("Access-Control-Allow-Origin", b"*"),
]

CORS_PREFLIGHT_HEADERS = [
    ("Access-Control-Allow-Methods", b"GET, POST, OPTIONS"),
    ("Access-Control-Allow-Headers", b"Content-Type,Authorization"),
]


class RequestBodyTooLarge(Exception):
    pass


class HTTPWrapper:

    def __init__(self, client_id, stream:UniConnection, log_callback=None, timeout=None):
        self.log_callback = log_callback
        self.client_id = client_id
        self.stream = stream
        self.timeout = timeout
        self.conn = h11.Connection(h11.SERVER)

    async def debug(self, *args):
        msg = [str(x) for x in args]
        msg = ' '.join(msg)
        if self.log_callback is not None:
            await self.log_callback(msg)

    async def send(self, event):
        # ConnectionClosed is never sent from here, so data is never None
        assert type(event) is not h11.ConnectionClosed
        data = self.conn.send(event)
        try:
            await self.stream.write(data)
        except BaseException:
            # If the write fails (or gets cancelled) the connection is unusable
            self.conn.send_failed()
            raise

    async def _read_from_peer(self):
        if self.conn.they_are_waiting_for_100_continue:
            await self.debug("Sending 100 Continue")
            go_ahead = h11.InformationalResponse(
                status_code=100, headers=basic_headers()
            )
            await self.send(go_ahead)
        try:
            data = await self.stream.read_one(timeout=self.timeout)
        except asyncio.TimeoutError:
            raise
        except Exception as exc:
            await self.debug('Error reading from peer:', exc)
            # They've stopped listening. Not much we can do about it here.
            data = b""
        self.conn.receive_data(data)

    async def next_event(self):
        while True:
            event = self.conn.next_event()
            if event is h11.NEED_DATA:
                await self._read_from_peer()
                continue
            return event

    async def read_body(self, max_size=None):
        """Collects the request body until EndOfMessage"""
        body = bytearray()
        while True:
            event = await self.next_event()
            if type(event) is h11.Data:
                body += event.data
                if max_size is not None and len(body) > max_size:
                    raise RequestBodyTooLarge(f"Request body exceeds {max_size} bytes")
                continue
            if type(event) is h11.EndOfMessage:
                return bytes(body)
            raise ConnectionError(f"Unexpected event while reading body: {type(event).__name__}")

    async def shutdown_and_clean_up(self):
        try:
            await self.stream.close()
        except Exception:
            return


def format_date_time(dt=None):
    """Generate a RFC 7231 / RFC 9110 IMF-fixdate string"""
    if dt is None:
        dt = datetime.datetime.now(datetime.timezone.utc)
    return email.utils.format_datetime(dt, usegmt=True)


def basic_headers():
    # HTTP requires these headers in all responses, every response is CORS-open
    headers = [
        ("Date", format_date_time().encode("ascii")),
        ("Server", SERVER_IDENT),
    ]
    headers.extend(CORS_HEADERS)
    return headers


class HTTPServerHandler:
    def __init__(self):
        self._wrapper:HTTPWrapper = None

    def basic_headers(self):
        return basic_headers()

    async def _process_request(self, wrapper:HTTPWrapper, request:h11.Request):
        self._wrapper = wrapper
        method = request.method.decode("ascii")
        func = getattr(self, f"do_{method}", None)
        if func is None:
            return await self.send_text(405, "Method not allowed")
        await func(request)

    async def do_OPTIONS(self, event):
        headers = self.basic_headers()
        headers.extend(CORS_PREFLIGHT_HEADERS)
        await self._wrapper.send(h11.Response(status_code=204, headers=headers))
        await self._wrapper.send(h11.EndOfMessage())

    async def send_response(self, status_code, body=b'', content_type='text/plain', extra_headers=None):
        if isinstance(body, str):
            body = body.encode('utf-8')
        headers = self.basic_headers()
        headers.append(("Content-Type", content_type.encode("ascii")))
        headers.append(("Content-Length", str(len(body)).encode("ascii")))
        if extra_headers is not None:
            headers.extend(extra_headers)
        await self._wrapper.send(h11.Response(status_code=status_code, headers=headers))
        if len(body) > 0:
            await self._wrapper.send(h11.Data(data=body))
        await self._wrapper.send(h11.EndOfMessage())

    async def send_text(self, status_code, message, close=False):
        extra_headers = None
        if close is True:
            extra_headers = [("Connection", b"close")]
        await self.send_response(status_code, message, 'text/plain; charset=utf-8', extra_headers)

    async def send_file(self, status_code, chunks, content_length, headers):
        """Streams an iterable of byte chunks with a known total length"""
        headers = self.basic_headers() + list(headers)
        headers.append(("Content-Length", str(content_length).encode("ascii")))
        await self._wrapper.send(h11.Response(status_code=status_code, headers=headers))
        for chunk in chunks:
            await self._wrapper.send(h11.Data(data=chunk))
        await self._wrapper.send(h11.EndOfMessage())


class HTTPServer:
    def __init__(self, client_handler, target:UniTarget, log_callback=None, client_timeout=None):
        self.log_callback = log_callback
        self.target = target
        self.client_handler = client_handler
        self.client_timeout = client_timeout

        self.server:UniServer = None
        self.clients = {}
        self.id_counter = 0
        self.__main_task = None

    async def debug(self, *args):
        msg = [str(x) for x in args]
        msg = ' '.join(msg)
        logger.debug(msg)
        if self.log_callback is not None:
            await self.log_callback(msg)

    @property
    def port(self):
        if self.server is None:
            return self.target.port
        return self.server.port

    async def __aenter__(self):
        _, err = await self.start()
        if err is not None:
            raise err
        self.__main_task = asyncio.create_task(self.serve())
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.terminate()

    async def start(self):
        """Binds the listening socket. Returns (True, None) or (None, err)"""
        if self.server is None:
            self.server = UniServer(self.target)
        return await self.server.start()

    async def terminate(self):
        if self.__main_task is not None:
            self.__main_task.cancel()
            self.__main_task = None
        if self.server is not None:
            await self.server.close()
        for task in list(self.clients.values()):
            task.cancel()
        if len(self.clients) > 0:
            await asyncio.gather(*self.clients.values(), return_exceptions=True)
        self.clients = {}

    async def __handle_connection(self, connection:UniConnection, client_id:int):
        wrapper = HTTPWrapper(client_id, connection, self.log_callback, self.client_timeout)
        handler = self.client_handler()
        await self.debug('[%s] New client connected from %s' % (client_id, connection.get_peer_str()))
        try:
            while True:
                if wrapper.conn.states == {h11.CLIENT: h11.CLOSED, h11.SERVER: h11.CLOSED}:
                    break

                if wrapper.conn.states[h11.CLIENT] == h11.MUST_CLOSE:
                    break

                if wrapper.conn.states[h11.SERVER] in (h11.MUST_CLOSE, h11.CLOSED):
                    break

                if wrapper.conn.states == {h11.CLIENT: h11.DONE, h11.SERVER: h11.DONE}:
                    wrapper.conn.start_next_cycle()
                    continue

                event = await wrapper.next_event()
                if type(event) is h11.Request:
                    await self.debug('[%s] %s %s' % (client_id, event.method.decode(), event.target.decode()))
                    try:
                        await handler._process_request(wrapper, event)
                    except Exception as exc:
                        await self.debug('[%s] Error in request handler: %r' % (client_id, exc))
                        if wrapper.conn.our_state is h11.SEND_RESPONSE:
                            handler._wrapper = wrapper
                            await handler.send_text(500, 'server error: %s' % exc, close=True)
                        break
                    continue
                if type(event) is h11.ConnectionClosed:
                    break
                # Data / EndOfMessage left over from a request answered before its body was read

        except (asyncio.TimeoutError, h11.RemoteProtocolError, ConnectionError) as exc:
            await self.debug('[%s] Connection dropped: %r' % (client_id, exc))
        except asyncio.CancelledError:
            raise
        except Exception:
            traceback.print_exc()
        finally:
            await wrapper.shutdown_and_clean_up()
            self.clients.pop(client_id, None)

    async def serve(self):
        _, err = await self.start()
        if err is not None:
            raise err
        await self.debug('HTTP server listening on %s:%s' % (self.target.get_ip_or_hostname(), self.port))
        async for connection in self.server.serve():
            client_id = self.id_counter
            self.id_counter += 1
            self.clients[client_id] = asyncio.create_task(self.__handle_connection(connection, client_id))
