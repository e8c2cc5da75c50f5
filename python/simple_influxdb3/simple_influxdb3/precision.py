# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.
import datetime
import decimal

import numpy as np
import pyarrow as pa


class WritePrecision:
    def __init__(self, name, v2_name, v3_name, scale):
        self.name    = name
        self.v2_name = v2_name
        self.v3_name = v3_name
        self.scale   = scale

    def __repr__(self):
        return '<WritePrecision %s>' % self.name


# Write precisions
S  = WritePrecision('S',  's',  'second',      1000000000)
MS = WritePrecision('MS', 'ms', 'millisecond', 1000000)
US = WritePrecision('US', 'us', 'microsecond', 1000)
NS = WritePrecision('NS', 'ns', 'nanosecond',  1)

WRITE_PRECISIONS = {p.name: p for p in (S, MS, US, NS)}

# Arrow time units
ARROW_UNITS = {
    's'  : S,
    'ms' : MS,
    'us' : US,
    'ns' : NS,
}

EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


def get_precision(p):
    '''
    Accepts a WritePrecision or one of its names ('ns', 'nanosecond', 'NS').
    '''
    if isinstance(p, WritePrecision):
        return p
    key = str(p).lower()
    for wp in WRITE_PRECISIONS.values():
        if key in (wp.name.lower(), wp.v2_name, wp.v3_name):
            return wp
    raise ValueError('Unsupported precision %r' % (p,))


def trunc_div(n, d):
    '''
    Integer division rounding toward zero.  Python's // floors, which would
    shift negative timestamps by one unit.
    '''
    q = abs(n) // d
    return q if n >= 0 else -q


def to_nanos(value, precision=NS):
    '''
    Scales an epoch value expressed in the given precision to nanoseconds.
    Non-integral values are truncated toward zero before scaling.
    '''
    if value is None:
        return None
    if isinstance(value, bool):
        raise TypeError('Boolean is not a timestamp')
    if isinstance(value, np.integer):
        value = int(value)
    elif isinstance(value, (float, decimal.Decimal, np.floating)):
        value = int(value)
    elif not isinstance(value, int):
        raise TypeError('%r is not a timestamp' % (value,))
    return value * get_precision(precision).scale


def from_nanos(nanos, precision=NS):
    '''
    Converts epoch nanoseconds to the given precision.  The division
    truncates: any sub-precision remainder is discarded.
    '''
    if nanos is None:
        return None
    return trunc_div(int(nanos), get_precision(precision).scale)


def datetime_to_nanos(dt):
    '''
    Converts a datetime to epoch nanoseconds.  Naive datetimes are taken to
    be UTC.
    '''
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    delta = dt - EPOCH
    return ((delta.days * 86400 + delta.seconds) * 1000000 +
            delta.microseconds) * 1000


def datetime64_to_nanos(value):
    return int(value.astype('datetime64[ns]').astype(np.int64))


def timestamp_to_nanos(value, precision=NS):
    '''
    Converts any supported application timestamp to epoch nanoseconds.
    '''
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        return datetime_to_nanos(value)
    if isinstance(value, np.datetime64):
        return datetime64_to_nanos(value)
    return to_nanos(value, precision)


def wire_time_unit(arrow_type):
    '''
    Returns the WritePrecision declared by an Arrow timestamp type, or None
    if the type carries no unit.
    '''
    if arrow_type is not None and pa.types.is_timestamp(arrow_type):
        return ARROW_UNITS[arrow_type.unit]
    return None


def decode_wire_timestamp(value, arrow_type=None):
    '''
    Decodes a timestamp cell to epoch nanoseconds:

        - an epoch integer in a column whose Arrow type declares a time unit
          is scaled by that unit,
        - an epoch integer with no unit is taken as epoch milliseconds,
        - a date-time without a zone is taken as UTC.

    Returns None for anything else.
    '''
    if value is None:
        return None
    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        unit = wire_time_unit(arrow_type)
        if unit is None:
            unit = MS
        return int(value) * unit.scale
    if isinstance(value, datetime.datetime):
        return datetime_to_nanos(value)
    if isinstance(value, np.datetime64):
        return datetime64_to_nanos(value)
    return None
