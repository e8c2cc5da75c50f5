# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.
import json
import logging
import urllib.parse

from pyarrow import flight

from .errors import ApiException, StreamCloseException
from .version import USER_AGENT


log = logging.getLogger(__name__)


def release(resource):
    '''
    Releases one acquired resource.  Anything with a close() method is
    closed; other objects (pyarrow batches) are freed once dereferenced.
    '''
    close = getattr(resource, 'close', None)
    if close is not None:
        close()


class FlightStreamSource:
    '''
    Iterates the record batches of a Flight DoGet stream.
    '''
    def __init__(self, reader):
        self.reader = reader
        self.closed = False

    def __iter__(self):
        return self

    def __next__(self):
        if self.closed:
            raise StopIteration
        try:
            chunk = self.reader.read_chunk()
        except StopIteration:
            self.closed = True
            raise
        except flight.FlightError as e:
            raise ApiException(str(e)) from e
        return chunk.data

    def close(self):
        if self.closed:
            return
        self.reader.cancel()
        self.closed = True


class QueryStream:
    '''
    Lazy, closeable sequence of query results.  Batches are pulled from
    the source one at a time and decoded into items; every batch is
    tracked from the moment it is received until it is released.

    close() is idempotent.  It closes the source, retrying once if that
    fails, then releases every batch still tracked.  All failures are
    collected and raised together as a StreamCloseException once nothing
    is left to release.
    '''
    def __init__(self, source, decode=None, release_cb=None, log=log):
        self.source     = source
        self.decode     = decode
        self.release_cb = release_cb
        self.log        = log
        self.acquired   = []
        self.closed     = False
        self._items     = self._generate()

    def __iter__(self):
        return self

    def __next__(self):
        if self.closed:
            raise StopIteration
        return next(self._items)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def _generate(self):
        for batch in self.source:
            self.acquired.append(batch)
            if self.decode is None:
                yield batch
                continue

            for item in self.decode(batch):
                yield item
            self._release(batch)
        if self.decode is not None:
            self.close()

    def _release(self, batch):
        self.acquired.remove(batch)
        if self.release_cb is not None:
            self.release_cb()
        release(batch)

    def close(self):
        if self.closed:
            return
        self.closed = True

        errors = []
        try:
            self._items.close()
        except ValueError:
            # Closed from inside the stream's own iteration; the source
            # close below still stops it.
            pass

        try:
            self.source.close()
        except Exception as e:
            self.log.warning('Closing query stream failed, retrying: %s', e)
            try:
                self.source.close()
            except Exception as e2:
                errors.append(e)
                errors.append(e2)

        if self.release_cb is not None:
            self.release_cb()
        while self.acquired:
            batch = self.acquired.pop(0)
            try:
                release(batch)
            except Exception as e:
                errors.append(e)

        if errors:
            raise StreamCloseException(errors) from errors[0]


class FlightQueryClient:
    '''
    Runs SQL and InfluxQL queries over Arrow Flight.  The query travels in
    the DoGet ticket as JSON; results come back as record batches.
    '''
    def __init__(self, config, flight_client=None, log=log):
        self.config = config
        self.log    = log
        self.client = flight_client

        self.default_headers = {}
        if config.token:
            self.default_headers['authorization'] = 'Bearer %s' % config.token
        for k, v in (config.headers or {}).items():
            self.default_headers[k.lower()] = v

    def _location(self):
        url  = urllib.parse.urlparse(self.config.host)
        host = url.hostname or self.config.host
        if url.scheme == 'https':
            return flight.Location.for_grpc_tls(host, url.port or 443)
        return flight.Location.for_grpc_tcp(host, url.port or 80)

    def _connect(self):
        options = [('grpc.primary_user_agent', USER_AGENT)]
        if self.config.max_inbound_message_size is not None:
            options.append(('grpc.max_receive_message_length',
                            self.config.max_inbound_message_size))
        if self.config.max_outbound_message_size is not None:
            options.append(('grpc.max_send_message_length',
                            self.config.max_outbound_message_size))
        if self.config.disable_grpc_compression:
            options.append(('grpc.default_compression_algorithm', 0))

        tls_root_certs = None
        if self.config.ssl_root_certs:
            with open(self.config.ssl_root_certs, 'rb') as f:
                tls_root_certs = f.read()

        return flight.FlightClient(
            self._location(),
            tls_root_certs=tls_root_certs,
            disable_server_verification=not self.config.verify_ssl,
            generic_options=options)

    def close(self):
        if self.client is not None:
            try:
                self.client.close()
            finally:
                self.client = None

    def headers(self, headers=None):
        merged = {k.lower(): v for k, v in (headers or {}).items()}
        for k, v in self.default_headers.items():
            merged.setdefault(k, v)
        return merged

    @staticmethod
    def ticket(query, database, query_type, params=None):
        data = {
            'database'   : database,
            'sql_query'  : query,
            'query_type' : query_type,
        }
        if params:
            data['params'] = params
        return flight.Ticket(json.dumps(data).encode('utf-8'))

    def call_options(self, headers, call_options):
        '''
        Builds the FlightCallOptions for one DoGet: timeout and headers.
        '''
        timeout = call_options.effective_timeout(self.config.query_timeout)
        return flight.FlightCallOptions(
            timeout=timeout,
            headers=[(k.encode(), str(v).encode())
                     for k, v in self.headers(headers).items()])

    def open_query(self, query, database, query_type, params, headers,
                   call_options):
        '''
        Starts a query and returns a FlightStreamSource over its batches.
        '''
        if self.client is None:
            self.client = self._connect()

        ticket  = self.ticket(query, database, query_type, params)
        options = self.call_options(headers, call_options)
        try:
            reader = self.client.do_get(ticket, options)
        except flight.FlightError as e:
            raise ApiException(str(e)) from e
        return FlightStreamSource(reader)
