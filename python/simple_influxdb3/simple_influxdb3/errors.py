# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.


class ApiException(Exception):
    '''
    The server could not be reached or the request failed on the wire.
    '''
    pass


class ApiHttpException(ApiException):
    def __init__(self, status_code, reason, headers=None):
        super().__init__('HTTP status code: %d; Message: %s' %
                         (status_code, reason))
        self.status_code = status_code
        self.reason      = reason
        self.headers     = headers if headers is not None else {}

    def get_header(self, name):
        return self.headers.get(name)


class NoSyncUnsupportedException(ApiHttpException):
    MESSAGE = ("Server doesn't support write with no_sync=True "
               "(supported by InfluxDB 3 Core/Enterprise servers only).")

    def __init__(self, status_code, reason, headers=None):
        super().__init__(status_code, reason, headers)
        self.args = ('%s %s' % (self.MESSAGE, self.args[0]),)


class ClientClosedException(Exception):
    pass


class StreamCloseException(ApiException):
    '''
    One or more resources of a query stream failed to close.  Every
    failure is kept in errors, in the order it happened.
    '''
    def __init__(self, errors):
        super().__init__('Failed to close query stream: %s' %
                         '; '.join(str(e) for e in errors))
        self.errors = errors
