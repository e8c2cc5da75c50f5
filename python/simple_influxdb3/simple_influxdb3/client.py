# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.
import gzip
import logging

from .decoder import BatchDecoder
from .errors import (ApiHttpException,
                     ClientClosedException,
                     NoSyncUnsupportedException)
from .flight import FlightQueryClient, QueryStream
from .options import ClientConfig, DEFAULT_QUERY_OPTIONS, DEFAULT_WRITE_OPTIONS
from .point import encode_points
from .rest import RestClient


DATABASE_REQUIRED = ("Please specify the 'database' as a method parameter "
                     "or use default configuration at "
                     "'ClientConfig.database'.")

# Types accepted as named query parameter values.
PARAMETER_TYPES = (str, int, float, bool)

# Write endpoints.
WRITE_V2_PATH = '/api/v2/write'
WRITE_V3_PATH = '/api/v3/write_lp'


def check_parameters(params):
    '''
    Raises TypeError for any parameter whose value can't be sent.
    '''
    for name, value in (params or {}).items():
        if not isinstance(value, PARAMETER_TYPES):
            raise TypeError('The parameter %s value has unsupported type %s' %
                            (name, type(value).__name__))


class Client:
    '''
    Writes line protocol over HTTP and runs SQL/InfluxQL queries over
    Arrow Flight.

        with Client('http://localhost:8181', token='...',
                    database='db') as c:
            c.write_record('mem,host=a free=1i')
            for row in c.query_rows('SELECT * FROM mem'):
                ...

    Settings passed per call in WriteOptions/QueryOptions take precedence
    over the client's ClientConfig, which takes precedence over library
    defaults.  The client may be shared between threads.
    '''
    def __init__(self, host=None, token=None, database=None, config=None,
                 transport=None, query_client=None, log=None, **kwargs):
        if config is None:
            config = ClientConfig(host=host, token=token, database=database,
                                  **kwargs)
        config.validate()

        self.config = config
        self.log    = log or logging.getLogger(__name__)
        self.closed = False
        self.rest   = RestClient(config, transport=transport, log=self.log)
        if query_client is None:
            query_client = FlightQueryClient(config, log=self.log)
        self.query_client = query_client

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        if self.closed:
            return
        self.closed = True
        try:
            self.rest.close()
        finally:
            self.query_client.close()

    def _check_open(self):
        if self.closed:
            raise ClientClosedException('Client has been closed.')

    def get_server_version(self):
        self._check_open()
        return self.rest.get_server_version()

    def write_record(self, record, options=None):
        if record is None:
            return
        self.write_records([record], options)

    def write_records(self, records, options=None):
        self._write(records, options)

    def write_point(self, point, options=None):
        if point is None:
            return
        self.write_points([point], options)

    def write_points(self, points, options=None):
        self._write(points, options)

    def _write(self, data, options):
        self._check_open()
        options  = options or DEFAULT_WRITE_OPTIONS
        database = options.database_safe(self.config)
        if not database:
            raise ValueError(DATABASE_REQUIRED)

        wp      = options.precision_safe(self.config)
        no_sync = options.no_sync_safe(self.config)
        lines   = encode_points(data, wp, options.default_tags_safe(self.config))
        if not lines:
            self.log.warning('No data to write, please check your input data.')
            return

        headers = {'Content-Type': 'text/plain; charset=utf-8'}
        headers.update(options.headers_safe())
        body = lines.encode('utf-8')
        if len(body) >= options.gzip_threshold_safe(self.config):
            body = gzip.compress(body)
            headers['Content-Encoding'] = 'gzip'

        if no_sync:
            path   = WRITE_V3_PATH
            params = {
                'db'        : database,
                'precision' : wp.v3_name,
                'no_sync'   : 'true',
            }
        else:
            path   = WRITE_V2_PATH
            params = {
                'bucket'    : database,
                'org'       : self.config.organization,
                'precision' : wp.v2_name,
            }

        try:
            self.rest.request('POST', path, headers=headers, body=body,
                              params=params)
        except ApiHttpException as e:
            if no_sync and e.status_code == 405:
                raise NoSyncUnsupportedException(e.status_code, e.reason,
                                                 e.headers) from e
            raise

    def _query(self, query, params, options, decode):
        self._check_open()
        if not query:
            raise ValueError("Expecting a non-empty string for 'query'")
        options  = options or DEFAULT_QUERY_OPTIONS
        database = options.database_safe(self.config)
        if not database:
            raise ValueError(DATABASE_REQUIRED)
        check_parameters(params)

        decoder = BatchDecoder(log=self.log)
        source  = self.query_client.open_query(query, database,
                                               options.query_type_safe(),
                                               dict(params or {}),
                                               options.headers_safe(),
                                               options.call_options_safe())
        return QueryStream(source, decode(decoder), release_cb=decoder.release,
                           log=self.log)

    def query(self, query, params=None, options=None):
        '''
        Returns a QueryStream of rows, each a list of values in column
        order.
        '''
        return self._query(query, params, options, lambda d: d.rows)

    def query_rows(self, query, params=None, options=None):
        '''
        Returns a QueryStream of {column name: value} dicts.
        '''
        return self._query(query, params, options, lambda d: d.dicts)

    def query_points(self, query, params=None, options=None):
        '''
        Returns a QueryStream of PointValues.
        '''
        return self._query(query, params, options, lambda d: d.point_values)

    def query_batches(self, query, params=None, options=None):
        '''
        Returns a QueryStream of the raw pyarrow.RecordBatch objects.  The
        batches stay referenced until the stream is closed.
        '''
        return self._query(query, params, options, lambda d: None)
