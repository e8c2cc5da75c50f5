# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.
import decimal
import logging
import numbers

import numpy as np
import pyarrow as pa

from . import precision


METADATA_KEY = b'iox::column::type'

# Column roles
ROLE_FIELD       = 'field'
ROLE_TAG         = 'tag'
ROLE_TIMESTAMP   = 'timestamp'
ROLE_MEASUREMENT = 'measurement'

MEASUREMENT_NAMES = ('measurement', 'iox::measurement')
TIME_NAMES        = ('time', 'timestamp')

log = logging.getLogger(__name__)


class ColumnType:
    def __init__(self, role, value_type=None):
        self.role       = role
        self.value_type = value_type

    def __repr__(self):
        if self.value_type:
            return '<ColumnType %s::%s>' % (self.role, self.value_type)
        return '<ColumnType %s>' % self.role

    @property
    def metadata(self):
        if self.value_type:
            return 'iox::column_type::%s::%s' % (self.role, self.value_type)
        return 'iox::column_type::%s' % self.role


# Column types
FIELD_INTEGER  = ColumnType(ROLE_FIELD, 'integer')
FIELD_UINTEGER = ColumnType(ROLE_FIELD, 'uinteger')
FIELD_FLOAT    = ColumnType(ROLE_FIELD, 'float')
FIELD_STRING   = ColumnType(ROLE_FIELD, 'string')
FIELD_BOOLEAN  = ColumnType(ROLE_FIELD, 'boolean')
FIELD_UNKNOWN  = ColumnType(ROLE_FIELD)
TAG            = ColumnType(ROLE_TAG)
TIMESTAMP      = ColumnType(ROLE_TIMESTAMP)
MEASUREMENT    = ColumnType(ROLE_MEASUREMENT)

COLUMN_TYPES = {ct.metadata: ct for ct in (FIELD_INTEGER,
                                           FIELD_UINTEGER,
                                           FIELD_FLOAT,
                                           FIELD_STRING,
                                           FIELD_BOOLEAN,
                                           TAG,
                                           TIMESTAMP,
                                           MEASUREMENT)}


def parse_column_type(metadata):
    '''
    Parses an 'iox::column_type::<role>[::<type>]' string.  Unknown field
    types map to FIELD_UNKNOWN; unknown roles and malformed strings to None.
    '''
    if metadata is None:
        return None
    if isinstance(metadata, bytes):
        metadata = metadata.decode('utf-8', 'replace')

    ct = COLUMN_TYPES.get(metadata)
    if ct is not None:
        return ct

    parts = metadata.split('::')
    if len(parts) < 3:
        return None
    if parts[2] == ROLE_FIELD:
        return FIELD_UNKNOWN
    return None


def column_type_for(field):
    '''
    Returns the ColumnType declared in a pyarrow.Field's metadata, or None
    when the column carries no (recognized) metadata.
    '''
    if not field.metadata:
        return None
    return parse_column_type(field.metadata.get(METADATA_KEY))


def is_text(value):
    return isinstance(value, str)


def is_text_wrapper(value):
    return isinstance(value, (pa.StringScalar, pa.LargeStringScalar))


def unwrap_text(value):
    if is_text_wrapper(value):
        return value.as_py()
    return str(value)


def is_integer(value):
    return (isinstance(value, (numbers.Integral, np.integer)) and
            not isinstance(value, (bool, np.bool_)))


def is_number(value):
    return (isinstance(value, (numbers.Real, decimal.Decimal, np.integer,
                               np.floating)) and
            not isinstance(value, (bool, np.bool_)))


def is_boolean(value):
    return isinstance(value, (bool, np.bool_))


def _mismatch(name, value, expected, log):
    log.warning('Value of %s is not %s: %r', name, expected, value)
    return value


def coerce_value(column_type, name, value, arrow_type=None, log=log):
    '''
    Narrows a decoded cell to the canonical Python type for its column.
    Never raises: on a mismatch the original value is logged and returned
    unchanged.  None passes through.
    '''
    if value is None or column_type is None:
        return value

    if column_type is FIELD_INTEGER or column_type is FIELD_UINTEGER:
        if is_number(value):
            try:
                return int(value)
            except (ValueError, OverflowError):
                pass
        return _mismatch(name, value, 'an integer', log)

    if column_type is FIELD_FLOAT:
        if is_number(value):
            return float(value)
        return _mismatch(name, value, 'a float', log)

    if column_type is FIELD_STRING:
        if is_text(value) or is_text_wrapper(value):
            return unwrap_text(value)
        return _mismatch(name, value, 'a string', log)

    if column_type is FIELD_BOOLEAN:
        if is_boolean(value):
            return bool(value)
        return _mismatch(name, value, 'a boolean', log)

    if column_type is TAG or column_type is MEASUREMENT:
        if is_text(value) or is_text_wrapper(value):
            return unwrap_text(value)
        return _mismatch(name, value, 'a string', log)

    if column_type is TIMESTAMP:
        nanos = precision.decode_wire_timestamp(value, arrow_type)
        if nanos is None:
            return _mismatch(name, value, 'a timestamp', log)
        return nanos

    return value
