# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.
import dataclasses
import datetime
import time
from dataclasses import dataclass, field

from .precision import NS, WritePrecision, get_precision


DEFAULT_WRITE_PRECISION = NS
DEFAULT_GZIP_THRESHOLD  = 1000
DEFAULT_NO_SYNC         = False
DEFAULT_WRITE_TIMEOUT   = 10.0


class QueryType:
    SQL      = 'sql'
    INFLUXQL = 'influxql'


def is_unset(value):
    return value is None or (isinstance(value, str) and not value)


def resolve(call, client, default=None):
    '''
    Returns the first of call-level, client-level and library default
    values that is set.
    '''
    if not is_unset(call):
        return call
    if not is_unset(client):
        return client
    return default


@dataclass(frozen=True)
class ClientConfig:
    host: str
    token: str = None
    auth_scheme: str = None
    organization: str = None
    database: str = None
    write_precision: WritePrecision = None
    gzip_threshold: int = None
    write_no_sync: bool = None
    default_tags: dict = None
    headers: dict = None
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    query_timeout: float = None
    allow_http_redirects: bool = False
    verify_ssl: bool = True
    ssl_root_certs: str = None
    disable_grpc_compression: bool = False
    max_inbound_message_size: int = None
    max_outbound_message_size: int = None

    def validate(self):
        if is_unset(self.host):
            raise ValueError('The URL of the InfluxDB server has to be '
                             'defined.')

    def replace(self, **kwargs):
        return dataclasses.replace(self, **kwargs)


@dataclass(frozen=True)
class CallOptions:
    '''
    Per-query RPC settings.  deadline is absolute (a datetime or epoch
    seconds), timeout is relative (seconds).  compression only applies
    to data the client writes, so it has no effect on a query's DoGet
    response.  The message size limits are channel settings taken from
    ClientConfig when the connection is made.
    '''
    deadline: object = None
    timeout: float = None
    compression: str = None
    max_inbound_message_size: int = None
    max_outbound_message_size: int = None

    def replace(self, **kwargs):
        return dataclasses.replace(self, **kwargs)

    def remaining(self, now=None):
        '''
        Seconds left until the deadline, or None if there is no deadline
        or it has already passed.
        '''
        if self.deadline is None:
            return None
        deadline = self.deadline
        if isinstance(deadline, datetime.datetime):
            if deadline.tzinfo is None:
                deadline = deadline.replace(tzinfo=datetime.timezone.utc)
            deadline = deadline.timestamp()
        now = time.time() if now is None else now
        left = deadline - now
        return left if left > 0 else None

    def effective_timeout(self, default=None, now=None):
        left = self.remaining(now)
        if left is not None:
            return left
        if self.timeout is not None and self.timeout > 0:
            return self.timeout
        if default is not None and default > 0:
            return default
        return None


@dataclass(frozen=True)
class WriteOptions:
    database: str = None
    precision: WritePrecision = None
    gzip_threshold: int = None
    no_sync: bool = None
    default_tags: dict = None
    headers: dict = None

    def replace(self, **kwargs):
        return dataclasses.replace(self, **kwargs)

    def database_safe(self, config):
        return resolve(self.database, config.database)

    def precision_safe(self, config):
        return get_precision(resolve(self.precision,
                                     config.write_precision,
                                     DEFAULT_WRITE_PRECISION))

    def gzip_threshold_safe(self, config):
        return resolve(self.gzip_threshold, config.gzip_threshold,
                       DEFAULT_GZIP_THRESHOLD)

    def no_sync_safe(self, config):
        return resolve(self.no_sync, config.write_no_sync, DEFAULT_NO_SYNC)

    def default_tags_safe(self, config):
        return dict(resolve(self.default_tags or None,
                            config.default_tags or None, {}))

    def headers_safe(self):
        return dict(self.headers or {})


@dataclass(frozen=True)
class QueryOptions:
    database: str = None
    query_type: str = None
    headers: dict = None
    call_options: CallOptions = field(default_factory=CallOptions)

    def replace(self, **kwargs):
        return dataclasses.replace(self, **kwargs)

    def database_safe(self, config):
        return resolve(self.database, config.database)

    def query_type_safe(self):
        return resolve(self.query_type, None, QueryType.SQL)

    def headers_safe(self):
        return dict(self.headers or {})

    def call_options_safe(self):
        return self.call_options or CallOptions()


DEFAULT_WRITE_OPTIONS = WriteOptions()
DEFAULT_QUERY_OPTIONS = QueryOptions()
INFLUXQL_QUERY_OPTIONS = QueryOptions(query_type=QueryType.INFLUXQL)
