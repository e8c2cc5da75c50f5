# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.
import logging

import pyarrow as pa

from . import coercion
from . import precision
from .point import PointValues


class Column:
    def __init__(self, name, arrow_type, column_type):
        self.name        = name
        self.arrow_type  = arrow_type
        self.column_type = column_type

        # Columns decoded as timestamps are read as raw epoch integers so
        # that sub-microsecond digits survive.
        self.is_time = (column_type is coercion.TIMESTAMP or
                        (column_type is None and
                         name in coercion.TIME_NAMES))
        self.is_measurement = (column_type is coercion.MEASUREMENT or
                               name in coercion.MEASUREMENT_NAMES)

    def __repr__(self):
        return '<Column %s %s %r>' % (self.name, self.arrow_type,
                                      self.column_type)

    def read(self, array, log):
        '''
        Returns the column's cells as a list of python values.  Timestamp
        arrays are read as epoch integers: raw for time columns, which are
        scaled by their unit when decoded, and in nanoseconds otherwise.
        '''
        if pa.types.is_timestamp(array.type):
            values = array.cast(pa.int64()).to_pylist()
            if self.is_time:
                return values
            scale = precision.ARROW_UNITS[array.type.unit].scale
            return [None if v is None else v * scale for v in values]

        try:
            return array.to_pylist()
        except (ValueError, pa.ArrowException) as e:
            log.warning('Reading %s as raw integers: %s', self.name, e)
        try:
            return array.cast(pa.int64()).to_pylist()
        except (ValueError, pa.ArrowException) as e:
            log.warning('Value of %s is unreadable: %s', self.name, e)
            return [None] * len(array)


class BatchDecoder:
    '''
    Converts rows of a pyarrow.RecordBatch into python rows in one of three
    shapes:

        to_row()          - list of values in column order
        to_dict()         - {column name: value}
        to_point_values() - PointValues with each column routed to the
                            measurement, a tag, a field or the timestamp

    Column roles come from the 'iox::column::type' field metadata.  They
    are parsed once per schema and the cell values once per batch, so
    walking every row of a batch does not repeat that work.  A decoder
    holds no state shared between queries.
    '''
    def __init__(self, log=None):
        self.log     = log or logging.getLogger(__name__)
        self.schema  = None
        self.columns = None
        self.batch   = None
        self.values  = None

    def columns_for(self, schema):
        if (self.schema is None or
                not schema.equals(self.schema, check_metadata=True)):
            self.columns = [Column(f.name, f.type,
                                   coercion.column_type_for(f))
                            for f in schema]
            self.schema  = schema
        return self.columns

    def _load(self, batch):
        if batch is not self.batch:
            columns     = self.columns_for(batch.schema)
            self.values = [c.read(batch.column(i), self.log)
                           for i, c in enumerate(columns)]
            self.batch  = batch
        return self.columns, self.values

    def release(self):
        '''
        Drops the cached batch and its decoded cells.
        '''
        self.batch  = None
        self.values = None

    def _timestamp(self, column, value):
        return precision.decode_wire_timestamp(value, column.arrow_type)

    def _mapped(self, column, value):
        if value is None:
            return None

        ct = column.column_type
        if ct is None:
            if column.is_time:
                nanos = self._timestamp(column, value)
                if nanos is not None:
                    return nanos
            return value

        return coercion.coerce_value(ct, column.name, value,
                                     column.arrow_type, self.log)

    def to_row(self, batch, index):
        columns, values = self._load(batch)
        return [self._mapped(c, v[index]) for c, v in zip(columns, values)]

    def to_dict(self, batch, index):
        columns, values = self._load(batch)
        row = {}
        for c, v in zip(columns, values):
            row[c.name] = self._mapped(c, v[index])
        return row

    def to_point_values(self, batch, index):
        columns, values = self._load(batch)
        pv = PointValues()
        for c, v in zip(columns, values):
            value = v[index]
            if value is None:
                continue

            ct = c.column_type
            if c.is_measurement:
                if (coercion.is_text(value) or
                        coercion.is_text_wrapper(value)):
                    pv.set_measurement(coercion.unwrap_text(value))
                    continue
                if ct is coercion.MEASUREMENT:
                    self.log.warning('Value of %s is not a string: %r',
                                     c.name, value)
                    continue

            if ct is None:
                if c.is_time:
                    nanos = self._timestamp(c, value)
                    if nanos is not None:
                        pv.timestamp = nanos
                        continue
                pv.set_field(c.name, value)
            elif ct.role == coercion.ROLE_FIELD:
                pv.set_field(c.name, coercion.coerce_value(
                    ct, c.name, value, c.arrow_type, self.log))
            elif ct is coercion.TAG:
                tag = coercion.coerce_value(ct, c.name, value,
                                            c.arrow_type, self.log)
                if coercion.is_text(tag):
                    pv.set_tag(c.name, tag)
            elif ct is coercion.TIMESTAMP:
                nanos = coercion.coerce_value(ct, c.name, value,
                                              c.arrow_type, self.log)
                if coercion.is_integer(nanos):
                    pv.timestamp = nanos
        return pv

    def rows(self, batch):
        for i in range(batch.num_rows):
            yield self.to_row(batch, i)

    def dicts(self, batch):
        for i in range(batch.num_rows):
            yield self.to_dict(batch, i)

    def point_values(self, batch):
        for i in range(batch.num_rows):
            yield self.to_point_values(batch, i)
