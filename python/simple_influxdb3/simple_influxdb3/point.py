# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.
import decimal
import math

import numpy as np

from . import precision


class FieldKind:
    FLOAT   = 'float'
    INTEGER = 'integer'
    BOOLEAN = 'boolean'
    STRING  = 'string'


PYTHON_KINDS = {
    FieldKind.FLOAT   : float,
    FieldKind.INTEGER : int,
    FieldKind.BOOLEAN : bool,
    FieldKind.STRING  : str,
}

KEY_ESCAPES = {
    '\n' : '\\n',
    '\r' : '\\r',
    '\t' : '\\t',
    ' '  : '\\ ',
    ','  : '\\,',
    '='  : '\\=',
}
MEASUREMENT_ESCAPES = {k: v for k, v in KEY_ESCAPES.items() if k != '='}
VALUE_ESCAPES = {
    '\\' : '\\\\',
    '"'  : '\\"',
}


def _escape(s, table):
    return ''.join(table.get(c, c) for c in s)


def escape_measurement(s):
    return _escape(s, MEASUREMENT_ESCAPES)


def escape_key(s):
    '''
    Escapes a tag key, tag value or field key.
    '''
    return _escape(s, KEY_ESCAPES)


def escape_string_value(s):
    return '"' + _escape(s, VALUE_ESCAPES) + '"'


def infer_kind(value):
    if value is None:
        return None
    if isinstance(value, (bool, np.bool_)):
        return FieldKind.BOOLEAN
    if isinstance(value, (int, np.integer)):
        return FieldKind.INTEGER
    if isinstance(value, (float, decimal.Decimal, np.floating)):
        return FieldKind.FLOAT
    if isinstance(value, str):
        return FieldKind.STRING
    return None


def format_float(value):
    '''
    Positional notation with at least one fractional digit: 1.0, 0.1,
    100000000000000000000.0.
    '''
    if isinstance(value, decimal.Decimal):
        value = float(value)
    return np.format_float_positional(value, unique=True, trim='0')


def format_field_value(value, kind):
    if kind == FieldKind.FLOAT:
        return format_float(value)
    if kind == FieldKind.INTEGER:
        return '%di' % value
    if kind == FieldKind.BOOLEAN:
        return 'true' if value else 'false'
    if kind == FieldKind.STRING:
        return escape_string_value(value)
    return str(value)


def is_defined(value):
    if value is None:
        return False
    if isinstance(value, (float, np.floating)) and not math.isfinite(value):
        return False
    return True


class PointValues:
    '''
    One time-series row: a measurement, tags, typed fields and an optional
    timestamp in epoch nanoseconds.  Query results are returned as
    PointValues; Point wraps one for writing.
    '''
    def __init__(self, measurement=None):
        self.measurement = measurement
        self.tags        = {}
        self.fields      = {}
        self.field_kinds = {}
        self.timestamp   = None

    def __repr__(self):
        return 'PointValues(%r, tags=%r, fields=%r, timestamp=%r)' % (
            self.measurement, self.tags, self.fields, self.timestamp)

    def __eq__(self, other):
        if not isinstance(other, PointValues):
            return NotImplemented
        return (self.measurement == other.measurement and
                self.tags == other.tags and
                self.fields == other.fields and
                self.field_kinds == other.field_kinds and
                self.timestamp == other.timestamp)

    def get_measurement(self):
        return self.measurement

    def set_measurement(self, measurement):
        if measurement is None:
            raise ValueError('Measurement is required')
        self.measurement = measurement
        return self

    def get_timestamp(self):
        return self.timestamp

    def set_timestamp(self, value, write_precision=precision.NS):
        self.timestamp = precision.timestamp_to_nanos(value, write_precision)
        return self

    def get_tag(self, name):
        return self.tags.get(name)

    def set_tag(self, name, value):
        self.tags[name] = value
        return self

    def set_tags(self, tags):
        for k, v in tags.items():
            self.set_tag(k, v)
        return self

    def remove_tag(self, name):
        self.tags.pop(name, None)
        return self

    def get_tag_names(self):
        return list(self.tags)

    def get_field(self, name):
        return self.fields.get(name)

    def get_field_type(self, name):
        '''
        Returns the python type of the named field's value, or None.
        '''
        kind = self.field_kinds.get(name)
        if kind is not None:
            return PYTHON_KINDS[kind]
        value = self.fields.get(name)
        return None if value is None else type(value)

    def get_field_names(self):
        return list(self.fields)

    def has_fields(self):
        return bool(self.fields)

    def _get_typed_field(self, name, kind):
        value = self.fields.get(name)
        if value is None:
            return None
        if self.field_kinds.get(name) != kind:
            raise TypeError('Field %s is %s, not %s' %
                            (name, self.field_kinds.get(name), kind))
        return value

    def get_float_field(self, name):
        return self._get_typed_field(name, FieldKind.FLOAT)

    def get_integer_field(self, name):
        return self._get_typed_field(name, FieldKind.INTEGER)

    def get_string_field(self, name):
        return self._get_typed_field(name, FieldKind.STRING)

    def get_boolean_field(self, name):
        return self._get_typed_field(name, FieldKind.BOOLEAN)

    def _put_field(self, name, value, kind):
        if not name:
            raise ValueError('Field name must be non-empty')
        self.fields[name]      = value
        self.field_kinds[name] = kind
        return self

    def set_field(self, name, value):
        return self._put_field(name, value, infer_kind(value))

    def set_fields(self, fields):
        for k, v in fields.items():
            self.set_field(k, v)
        return self

    def set_float_field(self, name, value):
        return self._put_field(name, float(value), FieldKind.FLOAT)

    def set_integer_field(self, name, value):
        return self._put_field(name, int(value), FieldKind.INTEGER)

    def set_string_field(self, name, value):
        return self._put_field(name, str(value), FieldKind.STRING)

    def set_boolean_field(self, name, value):
        return self._put_field(name, bool(value), FieldKind.BOOLEAN)

    def remove_field(self, name):
        self.fields.pop(name, None)
        self.field_kinds.pop(name, None)
        return self

    def copy(self):
        pv             = PointValues(self.measurement)
        pv.tags        = dict(self.tags)
        pv.fields      = dict(self.fields)
        pv.field_kinds = dict(self.field_kinds)
        pv.timestamp   = self.timestamp
        return pv

    def as_point(self, measurement=None):
        if measurement is not None:
            self.set_measurement(measurement)
        return Point.from_values(self)


class Point:
    '''
    A point to be written.  Setters return the point so calls can be
    chained:

        Point('mem').set_tag('host', 'a').set_field('free', 12)
    '''
    def __init__(self, measurement, values=None):
        if values is None:
            values = PointValues()
        self.values = values
        self.set_measurement(measurement)

    def __repr__(self):
        return 'Point(%r)' % self.to_line_protocol()

    def __eq__(self, other):
        if not isinstance(other, Point):
            return NotImplemented
        return self.values == other.values

    @staticmethod
    def measurement(name):
        return Point(name)

    @staticmethod
    def from_values(values):
        if values.measurement is None:
            raise ValueError('Missing measurement!')
        return Point(values.measurement, values=values.copy())

    def get_measurement(self):
        return self.values.measurement

    def set_measurement(self, measurement):
        self.values.set_measurement(measurement)
        return self

    def get_timestamp(self):
        return self.values.timestamp

    def set_timestamp(self, value, write_precision=precision.NS):
        self.values.set_timestamp(value, write_precision)
        return self

    def get_tag(self, name):
        return self.values.get_tag(name)

    def set_tag(self, name, value):
        self.values.set_tag(name, value)
        return self

    def set_tags(self, tags):
        self.values.set_tags(tags)
        return self

    def remove_tag(self, name):
        self.values.remove_tag(name)
        return self

    def get_tag_names(self):
        return self.values.get_tag_names()

    def get_field(self, name):
        return self.values.get_field(name)

    def get_field_type(self, name):
        return self.values.get_field_type(name)

    def get_field_names(self):
        return self.values.get_field_names()

    def has_fields(self):
        return self.values.has_fields()

    def get_float_field(self, name):
        return self.values.get_float_field(name)

    def get_integer_field(self, name):
        return self.values.get_integer_field(name)

    def get_string_field(self, name):
        return self.values.get_string_field(name)

    def get_boolean_field(self, name):
        return self.values.get_boolean_field(name)

    def set_field(self, name, value):
        self.values.set_field(name, value)
        return self

    def set_fields(self, fields):
        self.values.set_fields(fields)
        return self

    def set_float_field(self, name, value):
        self.values.set_float_field(name, value)
        return self

    def set_integer_field(self, name, value):
        self.values.set_integer_field(name, value)
        return self

    def set_string_field(self, name, value):
        self.values.set_string_field(name, value)
        return self

    def set_boolean_field(self, name, value):
        self.values.set_boolean_field(name, value)
        return self

    def remove_field(self, name):
        self.values.remove_field(name)
        return self

    def copy(self):
        return Point(self.values.measurement, values=self.values.copy())

    def to_line_protocol(self, write_precision=None, default_tags=None):
        '''
        Returns the point as one line of line protocol, or '' if it has no
        field that can be written.  Tags are sorted by key; default_tags
        fill in keys the point does not set itself.
        '''
        fields = []
        for name, value in self.values.fields.items():
            if not is_defined(value):
                continue
            kind = self.values.field_kinds.get(name)
            fields.append('%s=%s' % (escape_key(name),
                                     format_field_value(value, kind)))
        if not fields:
            return ''

        tags = dict(default_tags or {})
        tags.update(self.values.tags)

        line = escape_measurement(self.values.measurement)
        for k in sorted(tags):
            v = tags[k]
            if not k or not v:
                continue
            line += ',%s=%s' % (escape_key(k), escape_key(str(v)))
        line += ' ' + ','.join(fields)

        if self.values.timestamp is not None:
            wp = precision.get_precision(write_precision or precision.NS)
            line += ' %d' % precision.from_nanos(self.values.timestamp, wp)
        return line


def encode_points(points, write_precision=None, default_tags=None):
    '''
    Encodes a sequence of Points and raw line-protocol strings into a
    newline-separated batch.  None entries and points that encode to
    nothing are dropped.
    '''
    lines = []
    for p in points:
        if p is None:
            continue
        if isinstance(p, Point):
            line = p.to_line_protocol(write_precision, default_tags)
        elif isinstance(p, PointValues):
            line = Point.from_values(p).to_line_protocol(write_precision,
                                                         default_tags)
        else:
            line = str(p)
        if line:
            lines.append(line)
    return '\n'.join(lines)
