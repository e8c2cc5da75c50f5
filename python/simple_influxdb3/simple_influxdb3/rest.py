# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.
import http
import json
import logging
import ssl

import httpx

from .errors import ApiException, ApiHttpException
from .version import USER_AGENT


# Body fields searched, in order, for an error message.
ERROR_BODY_FIELDS = ('message', 'error_message', 'error')

# Headers carrying an error message.
ERROR_HEADERS = ('X-Platform-Error-Code', 'X-Influx-Error', 'X-InfluxDb-Error')


def find_value(node, key):
    '''
    Depth-first search of decoded JSON for the first value stored under key.
    '''
    if isinstance(node, dict):
        if key in node:
            return node[key]
        children = node.values()
    elif isinstance(node, list):
        children = node
    else:
        return None

    for child in children:
        v = find_value(child, key)
        if v is not None:
            return v
    return None


def error_reason(status_code, headers, body, log=None):
    '''
    Picks the most useful message for a failed response: a message field
    of a JSON body, then a known error header, then the raw body, then the
    HTTP reason phrase.
    '''
    text = body.decode('utf-8', 'replace') if body else ''
    if text:
        try:
            root = json.loads(text)
        except ValueError:
            root = None
            if log:
                log.debug("Can't parse msg from response %r", text)
        for name in ERROR_BODY_FIELDS:
            v = find_value(root, name)
            if v is None or isinstance(v, (dict, list)):
                continue
            v = str(v)
            if v:
                return v

    for name in ERROR_HEADERS:
        v = headers.get(name)
        if v:
            return v

    if text:
        return text

    try:
        return http.HTTPStatus(status_code).phrase
    except ValueError:
        return ''


class RestClient:
    '''
    Thin HTTP layer over httpx.  Pass transport to substitute the network
    (for example an httpx.MockTransport).
    '''
    def __init__(self, config, transport=None, log=None):
        self.config = config
        self.log    = log or logging.getLogger(__name__)

        headers = {'User-Agent': USER_AGENT, 'Accept': '*/*'}
        if config.token:
            headers['Authorization'] = '%s %s' % (config.auth_scheme or 'Token',
                                                  config.token)
        headers.update(config.headers or {})

        if config.ssl_root_certs:
            verify = ssl.create_default_context(cafile=config.ssl_root_certs)
        else:
            verify = config.verify_ssl

        self.http = httpx.Client(base_url=config.host,
                                 headers=headers,
                                 timeout=config.write_timeout,
                                 follow_redirects=config.allow_http_redirects,
                                 verify=verify,
                                 transport=transport)

    def close(self):
        self.http.close()

    def request(self, method, path, headers=None, body=None, params=None):
        '''
        Sends a request and returns the httpx.Response.  Raises
        ApiHttpException for a non-2xx status and ApiException if the
        server could not be reached.
        '''
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        self.log.debug('%s %s %s', method, path, params or '')

        try:
            r = self.http.request(method, path, headers=headers,
                                  content=body, params=params)
        except httpx.TransportError as e:
            raise ApiException(str(e) or e.__class__.__name__) from e

        if r.status_code < 200 or r.status_code >= 300:
            reason = error_reason(r.status_code, r.headers, r.content,
                                  self.log)
            raise ApiHttpException(r.status_code, reason, r.headers)
        return r

    def get_server_version(self):
        r = self.request('GET', '/ping')
        version = r.headers.get('X-Influxdb-Version')
        if version:
            return version
        try:
            return r.json().get('version')
        except (ValueError, AttributeError):
            return None
