# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.
from .client import Client
from .decoder import BatchDecoder
from .errors import (ApiException,
                     ApiHttpException,
                     NoSyncUnsupportedException,
                     ClientClosedException,
                     StreamCloseException)
from .flight import QueryStream
from .options import (ClientConfig,
                      WriteOptions,
                      QueryOptions,
                      CallOptions,
                      QueryType)
from .point import Point, PointValues, FieldKind
from .precision import WritePrecision
from .version import VERSION
from .write_queue import WriteQueue


__version__ = VERSION

__all__ = [
    'Client',
    'BatchDecoder',
    'ApiException',
    'ApiHttpException',
    'NoSyncUnsupportedException',
    'ClientClosedException',
    'StreamCloseException',
    'QueryStream',
    'ClientConfig',
    'WriteOptions',
    'QueryOptions',
    'CallOptions',
    'QueryType',
    'Point',
    'PointValues',
    'FieldKind',
    'WritePrecision',
    'WriteQueue',
]
