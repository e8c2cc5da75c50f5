# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.
import httpx
import pyarrow as pa
import pytest

from simple_influxdb3 import Client
from simple_influxdb3 import coercion


def column(name, values, arrow_type, column_type=None):
    metadata = None
    if column_type is not None:
        metadata = {coercion.METADATA_KEY: column_type.metadata.encode()}
    return (pa.field(name, arrow_type, metadata=metadata),
            pa.array(values, type=arrow_type))


def make_batch(*columns):
    fields, arrays = zip(*columns)
    return pa.RecordBatch.from_arrays(list(arrays), schema=pa.schema(fields))


class ClosingBatch:
    '''
    RecordBatch stand-in that counts how often it is released.
    '''
    def __init__(self, batch):
        self.batch  = batch
        self.closes = 0

    def __getattr__(self, name):
        return getattr(self.batch, name)

    def close(self):
        self.closes += 1


class FakeSource:
    '''
    Batch source that builds its batches lazily, like a network stream.
    '''
    def __init__(self, batches, close_failures=0):
        self.batches        = batches
        self.close_failures = close_failures
        self.close_calls    = 0
        self.pulled         = 0
        self._it            = self._generate()

    def _generate(self):
        for b in self.batches:
            yield b() if callable(b) else b

    def __iter__(self):
        return self

    def __next__(self):
        b = next(self._it)
        self.pulled += 1
        return b

    def close(self):
        self.close_calls += 1
        if self.close_calls <= self.close_failures:
            raise RuntimeError('close failed #%u' % self.close_calls)
        self._it.close()


class FakeQueryClient:
    def __init__(self, batches=()):
        self.batches = list(batches)
        self.calls   = []
        self.sources = []
        self.closed  = False

    def open_query(self, query, database, query_type, params, headers,
                   call_options):
        self.calls.append({
            'query'        : query,
            'database'     : database,
            'query_type'   : query_type,
            'params'       : params,
            'headers'      : headers,
            'call_options' : call_options,
        })
        source = FakeSource(self.batches)
        self.sources.append(source)
        return source

    def close(self):
        self.closed = True


class Recorder:
    '''
    httpx handler recording every request and answering with a canned
    response.
    '''
    def __init__(self, status_code=204, **kwargs):
        self.requests    = []
        self.status_code = status_code
        self.kwargs      = kwargs

    def __call__(self, request):
        request.read()
        self.requests.append(request)
        return httpx.Response(self.status_code, **self.kwargs)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def query_client():
    return FakeQueryClient()


@pytest.fixture
def client(recorder, query_client):
    c = Client(host='http://localhost:8181', token='my-token',
               database='my-db', transport=httpx.MockTransport(recorder),
               query_client=query_client)
    yield c
    c.close()
