"""Annotated CSV decoding for Flux query responses.

A response body holds one or more table blocks. Each block starts with
annotation rows (``#datatype``, ``#group``, ``#default``), continues with a
header row naming the columns and then data rows. Column 0 of every row is
the row kind marker; data and header rows leave it empty.

    #datatype,string,long,dateTime:RFC3339,double,string
    #group,false,false,false,false,true
    #default,_result,,,,
    ,result,table,_time,_value,_field
    ,,0,2020-02-18T10:34:08.135814545Z,1.4,f

A block whose header names an ``error`` column reports a query failure; its
first data row carries the message and an optional reference code.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterator, List, Optional
import csv
import io
import logging

from ..codec import parse_value
from ..exceptions import ColumnCountMismatchError, FluxQueryError, MalformedAnnotationError
from ..models import FluxColumn, FluxRecord, FluxTableMetadata
from ..value import DataType

logger = logging.getLogger(__name__)

ANNOTATION_DATATYPE = "#datatype"
ANNOTATION_GROUP = "#group"
ANNOTATION_DEFAULT = "#default"


class ParsingState(Enum):
    NORMAL = "normal"
    ANNOTATION = "annotation"
    ERROR = "error"


class AnnotatedTableReader:
    """Forward-only iterator of ``FluxRecord`` objects over one response body.

    The reader is not restartable; use ``FluxResponse`` to decode the same
    body more than once.
    """

    def __init__(self, text: str) -> None:
        self._rows = csv.reader(io.StringIO(text, newline=""))
        self._state = ParsingState.NORMAL
        self._table: Optional[FluxTableMetadata] = None
        self._datatype_found = False
        self._next_position = 0
        self.tables: List[FluxTableMetadata] = []

    @property
    def state(self) -> ParsingState:
        return self._state

    @property
    def table(self) -> Optional[FluxTableMetadata]:
        """Metadata of the table currently being read."""
        return self._table

    def __iter__(self) -> "AnnotatedTableReader":
        return self

    def __next__(self) -> FluxRecord:
        for row in self._rows:
            if len(row) <= 1:
                continue
            record = self._consume(row)
            if record is not None:
                return record
        self._finish()
        raise StopIteration

    # -------------------- State machine --------------------

    def _consume(self, row: List[str]) -> Optional[FluxRecord]:
        first = row[0]
        if first.startswith("#") and self._state is ParsingState.NORMAL:
            self._open_table(len(row) - 1)

        table = self._table
        if table is None:
            raise MalformedAnnotationError("annotations not found")
        if self._state is not ParsingState.ERROR and len(row) - 1 != len(table.columns):
            raise ColumnCountMismatchError(
                "row has different number of columns than the table: "
                f"{len(row) - 1} vs {len(table.columns)}"
            )

        if first == "":
            return self._consume_unmarked(row, table)
        if first == ANNOTATION_DATATYPE:
            for column, token in zip(table.columns, row[1:]):
                column.data_type = DataType.from_annotation(token)
            self._datatype_found = True
        elif first == ANNOTATION_GROUP:
            for column, flag in zip(table.columns, row[1:]):
                column.group = flag == "true"
        elif first == ANNOTATION_DEFAULT:
            for column, default in zip(table.columns, row[1:]):
                column.default_value = default
        else:
            raise MalformedAnnotationError(f"invalid first cell: {first}")
        return None

    def _consume_unmarked(self, row: List[str], table: FluxTableMetadata) -> Optional[FluxRecord]:
        if self._state is ParsingState.ANNOTATION:
            if not self._datatype_found:
                raise MalformedAnnotationError("datatype annotation not found")
            for column, name in zip(table.columns, row[1:]):
                column.name = name
            if row[1] == "error":
                self._state = ParsingState.ERROR
            else:
                self._state = ParsingState.NORMAL
            return None

        if self._state is ParsingState.ERROR:
            raise _query_error(row[1:], len(table.columns))

        values = {}
        for column, cell in zip(table.columns, row[1:]):
            if cell == "":
                cell = column.default_value
            # duplicate column names: last wins
            values[column.name] = parse_value(cell, column.data_type, column.name)
        return FluxRecord(table=table.position, values=values)

    def _open_table(self, width: int) -> None:
        self._table = FluxTableMetadata(
            position=self._next_position,
            columns=[FluxColumn() for _ in range(width)],
        )
        self._next_position += 1
        self._datatype_found = False
        self._state = ParsingState.ANNOTATION
        self.tables.append(self._table)
        logger.debug("Annotated table %d opened with %d columns", self._table.position, width)

    def _finish(self) -> None:
        if self._state is ParsingState.ANNOTATION:
            raise MalformedAnnotationError("response ended inside a table annotation block")
        if self._state is ParsingState.ERROR:
            raise FluxQueryError("unknown query error")


def _query_error(cells: List[str], width: int) -> FluxQueryError:
    # a row wider than the header carries an extra blank cell before the message
    if len(cells) > width and cells[0] == "":
        cells = cells[1:]
    message = cells[0] if cells else ""
    reference = cells[1] if len(cells) > 1 else ""
    return FluxQueryError(message or "unknown query error", reference or None)


class FluxResponse:
    """Buffered query response that can be decoded any number of times."""

    def __init__(self, text: str) -> None:
        self.text = text

    def records(self) -> AnnotatedTableReader:
        return AnnotatedTableReader(self.text)

    def __iter__(self) -> Iterator[FluxRecord]:
        return self.records()

    def is_empty(self) -> bool:
        return next(self.records(), None) is None


def read_records(text: str) -> List[FluxRecord]:
    """Decode a whole response body eagerly."""
    return list(AnnotatedTableReader(text))
