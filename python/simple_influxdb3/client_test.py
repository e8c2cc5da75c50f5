# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.
import gzip
import logging

import httpx
import pyarrow as pa
import pytest

from simple_influxdb3 import (Client, ClientConfig, ClientClosedException,
                              NoSyncUnsupportedException, ApiHttpException,
                              Point, WriteOptions, QueryOptions, CallOptions,
                              QueryType)
from simple_influxdb3 import coercion
from simple_influxdb3.precision import MS

from conftest import Recorder, FakeQueryClient, column, make_batch


def make_client(handler, query_client=None, **kwargs):
    kwargs.setdefault('database', 'my-db')
    return Client(host='http://localhost:8181', token='my-token',
                  transport=httpx.MockTransport(handler),
                  query_client=query_client or FakeQueryClient(), **kwargs)


def cpu_batch():
    return make_batch(
        column('iox::measurement', ['cpu', 'cpu'], pa.string()),
        column('host', ['a', 'b'], pa.string(), coercion.TAG),
        column('usage', [0.5, 0.75], pa.float64(), coercion.FIELD_FLOAT),
        column('time', [1, 2], pa.timestamp('ns'), coercion.TIMESTAMP),
    )


class TestWrite:
    def test_record(self, client, recorder):
        client.write_record('mem,tag=one value=1.0')
        assert len(recorder.requests) == 1
        req = recorder.requests[0]
        assert req.method == 'POST'
        assert req.url.path == '/api/v2/write'
        assert dict(req.url.params) == {'bucket': 'my-db', 'precision': 'ns'}
        assert req.content == b'mem,tag=one value=1.0'
        assert req.headers['Authorization'] == 'Token my-token'
        assert req.headers['Content-Type'] == 'text/plain; charset=utf-8'
        assert 'Content-Encoding' not in req.headers

    def test_organization(self, recorder):
        with make_client(recorder, organization='my-org') as c:
            c.write_record('m v=1i')
        assert recorder.requests[0].url.params['org'] == 'my-org'

    def test_points(self, client, recorder):
        client.write_points([
            Point('a').set_tag('t', 'x').set_field('v', 1).set_timestamp(5),
            Point('b').set_field('v', 'y'),
        ])
        assert recorder.requests[0].content == b'a,t=x v=1i 5\nb v="y"'

    def test_precision(self, client, recorder):
        p = Point('a').set_field('v', 1).set_timestamp(1700000000123456789)
        client.write_point(p, WriteOptions(precision=MS))
        req = recorder.requests[0]
        assert req.url.params['precision'] == 'ms'
        assert req.content == b'a v=1i 1700000000123'

    def test_default_tags(self, recorder):
        with make_client(recorder, default_tags={'model': 'M5',
                                                 'unit': 'U1'}) as c:
            c.write_point(Point('h2o').set_tag('tag', 'one')
                          .set_tag('unit', 'U2').set_field('level', 2))
        assert (recorder.requests[0].content ==
                b'h2o,model=M5,tag=one,unit=U2 level=2i')

    def test_gzip_threshold(self, recorder):
        with make_client(recorder, gzip_threshold=10) as c:
            c.write_record('m v=1i')
            c.write_record('mem,host=a value=1.0')
        small, large = recorder.requests
        assert small.content == b'm v=1i'
        assert 'Content-Encoding' not in small.headers
        assert large.headers['Content-Encoding'] == 'gzip'
        assert gzip.decompress(large.content) == b'mem,host=a value=1.0'

    def test_gzip_threshold_is_inclusive(self, client, recorder):
        client.write_record('m v=1i', WriteOptions(gzip_threshold=6))
        assert recorder.requests[0].headers['Content-Encoding'] == 'gzip'

    def test_no_sync(self, client, recorder):
        client.write_record('m v=1i', WriteOptions(no_sync=True))
        req = recorder.requests[0]
        assert req.url.path == '/api/v3/write_lp'
        assert dict(req.url.params) == {'db': 'my-db',
                                        'precision': 'nanosecond',
                                        'no_sync': 'true'}

    def test_no_sync_unsupported(self):
        rec = Recorder(405, json={'message': 'method not allowed'})
        with make_client(rec) as c:
            with pytest.raises(NoSyncUnsupportedException) as e:
                c.write_record('m v=1i', WriteOptions(no_sync=True))
        assert e.value.status_code == 405
        assert str(e.value).startswith("Server doesn't support write with "
                                       "no_sync=True")
        assert 'method not allowed' in str(e.value)

    def test_405_without_no_sync(self):
        rec = Recorder(405)
        with make_client(rec) as c:
            with pytest.raises(ApiHttpException) as e:
                c.write_record('m v=1i')
        assert not isinstance(e.value, NoSyncUnsupportedException)

    def test_call_database(self, client, recorder):
        client.write_record('m v=1i', WriteOptions(database='other'))
        assert recorder.requests[0].url.params['bucket'] == 'other'

    def test_call_headers(self, client, recorder):
        client.write_record('m v=1i', WriteOptions(headers={'X-Trace': '7'}))
        assert recorder.requests[0].headers['X-Trace'] == '7'

    def test_database_required(self, recorder):
        with make_client(recorder, database=None) as c:
            with pytest.raises(ValueError, match='database'):
                c.write_record('m v=1i')
        assert recorder.requests == []

    def test_nothing_to_write(self, client, recorder, caplog):
        with caplog.at_level(logging.WARNING):
            client.write_points([Point('m'), None])
            client.write_point(None)
        assert recorder.requests == []
        assert 'No data to write' in caplog.text

    def test_config_object(self, recorder):
        config = ClientConfig(host='http://localhost:8181', database='cdb',
                              token='t', auth_scheme='Bearer')
        with Client(config=config,
                    transport=httpx.MockTransport(recorder),
                    query_client=FakeQueryClient()) as c:
            c.write_record('m v=1i')
        req = recorder.requests[0]
        assert req.url.params['bucket'] == 'cdb'
        assert req.headers['Authorization'] == 'Bearer t'


class TestQuery:
    def test_rows(self, client, query_client):
        query_client.batches = [cpu_batch()]
        with client.query('SELECT * FROM cpu') as rows:
            assert list(rows) == [['cpu', 'a', 0.5, 1], ['cpu', 'b', 0.75, 2]]
        call = query_client.calls[0]
        assert call['query'] == 'SELECT * FROM cpu'
        assert call['database'] == 'my-db'
        assert call['query_type'] == QueryType.SQL
        assert call['params'] == {}

    def test_dicts(self, client, query_client):
        query_client.batches = [cpu_batch(), cpu_batch()]
        rows = list(client.query_rows('SELECT * FROM cpu'))
        assert len(rows) == 4
        assert rows[1] == {'iox::measurement': 'cpu', 'host': 'b',
                           'usage': 0.75, 'time': 2}

    def test_points(self, client, query_client):
        query_client.batches = [cpu_batch()]
        points = list(client.query_points('SELECT * FROM cpu'))
        assert [p.get_tag('host') for p in points] == ['a', 'b']
        assert points[0].as_point().to_line_protocol() == \
            'cpu,host=a usage=0.5 1'

    def test_batches(self, client, query_client):
        b = cpu_batch()
        query_client.batches = [b]
        with client.query_batches('SELECT 1') as stream:
            assert list(stream) == [b]

    def test_stream_closes_source(self, client, query_client):
        query_client.batches = [cpu_batch()]
        list(client.query('SELECT 1'))
        assert query_client.sources[0].close_calls == 1

    def test_params(self, client, query_client):
        params = {'host': 'a', 'n': 3, 'f': 0.5, 'b': True}
        list(client.query('SELECT $host', params))
        assert query_client.calls[0]['params'] == params
        assert query_client.calls[0]['params'] is not params

    @pytest.mark.parametrize('value', [None, [1], {'a': 1}, b'x', object()])
    def test_unsupported_param(self, client, query_client, value):
        with pytest.raises(TypeError, match='unsupported type'):
            client.query('SELECT $p', {'p': value})
        assert query_client.calls == []

    def test_options(self, client, query_client):
        call_options = CallOptions(timeout=5)
        options = QueryOptions(database='other',
                               query_type=QueryType.INFLUXQL,
                               headers={'X-A': '1'},
                               call_options=call_options)
        before = options.replace()
        list(client.query('SHOW MEASUREMENTS', options=options))
        call = query_client.calls[0]
        assert call['database'] == 'other'
        assert call['query_type'] == 'influxql'
        assert call['headers'] == {'X-A': '1'}
        assert call['call_options'] is call_options
        assert options == before
        assert client.config.database == 'my-db'

    def test_empty_query(self, client):
        with pytest.raises(ValueError):
            client.query('')

    def test_database_required(self, recorder, query_client):
        with make_client(recorder, query_client, database=None) as c:
            with pytest.raises(ValueError, match='database'):
                c.query('SELECT 1')
        assert query_client.calls == []


class TestLifecycle:
    def test_closed_client(self, recorder, query_client):
        c = make_client(recorder, query_client)
        c.close()
        c.close()
        assert query_client.closed
        with pytest.raises(ClientClosedException):
            c.write_record('m v=1i')
        with pytest.raises(ClientClosedException):
            c.query('SELECT 1')
        with pytest.raises(ClientClosedException):
            c.get_server_version()
        assert recorder.requests == []

    def test_host_required(self):
        with pytest.raises(ValueError):
            Client(host=None, query_client=FakeQueryClient())

    def test_server_version(self):
        rec = Recorder(204, headers={'X-Influxdb-Version': '3.0.0'})
        with make_client(rec) as c:
            assert c.get_server_version() == '3.0.0'
