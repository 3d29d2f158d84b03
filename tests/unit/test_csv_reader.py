from __future__ import annotations

import pandas as pd
import pytest

from influxdb2_toolkit.exceptions import (
    ColumnCountMismatchError,
    FluxQueryError,
    MalformedAnnotationError,
    UnknownDataTypeError,
    ValueParseError,
)
from influxdb2_toolkit.flux.csv_reader import (
    AnnotatedTableReader,
    FluxResponse,
    ParsingState,
    read_records,
)
from influxdb2_toolkit.value import DataType, Value

SAMPLE = """#datatype,string,long,dateTime:RFC3339,dateTime:RFC3339,dateTime:RFC3339,double,string,string,string,string
#group,false,false,true,true,false,false,true,true,true,true
#default,_result,,,,,,,,,
,result,table,_start,_stop,_time,_value,_field,_measurement,a,b
,,0,2020-02-17T22:19:49.747562847Z,2020-02-18T22:19:49.747562847Z,2020-02-18T10:34:08.135814545Z,1.4,f,test,1,adsfasdf
,,0,2020-02-17T22:19:49.747562847Z,2020-02-18T22:19:49.747562847Z,2020-02-18T22:08:44.850214724Z,6.6,f,test,1,adsfasdf
"""

TWO_TABLES = """#datatype,string,long,dateTime:RFC3339,double,string
#group,false,false,false,false,true
#default,_result,,,,
,result,table,_time,_value,_field
,,0,2020-02-18T10:34:08Z,1.4,f

#datatype,string,long,dateTime:RFC3339,long,string
#group,false,false,false,false,true
#default,_result,,,,
,result,table,_time,_value,_field
,,1,2020-02-18T10:34:08Z,7,g
"""


def test_reads_sample_table() -> None:
    records = read_records(SAMPLE)

    assert len(records) == 2
    first = records[0]
    assert first.table == 0
    assert first.values["result"] == Value.string("_result")
    assert first.values["table"] == Value.long(0)
    assert first.values["_value"] == Value.double(1.4)
    assert first.values["_time"] == Value.time_rfc(pd.Timestamp("2020-02-18T10:34:08.135814545Z"))
    assert list(first.values) == [
        "result", "table", "_start", "_stop", "_time", "_value", "_field", "_measurement", "a", "b",
    ]
    assert first.field == "f"
    assert first.measurement == "test"
    assert records[1].value == 6.6


def test_table_metadata_tracks_annotations() -> None:
    reader = AnnotatedTableReader(SAMPLE)
    next(reader)

    table = reader.table
    assert table is not None
    assert table.position == 0
    assert [c.data_type for c in table.columns[:3]] == [DataType.STRING, DataType.LONG, DataType.TIME_RFC]
    assert table.group_key == ["_start", "_stop", "_field", "_measurement", "a", "b"]
    assert table.columns[0].default_value == "_result"
    assert reader.state is ParsingState.NORMAL


def test_multiple_tables_get_increasing_positions() -> None:
    reader = AnnotatedTableReader(TWO_TABLES)
    records = list(reader)

    assert [r.table for r in records] == [0, 1]
    assert records[1].values["_value"] == Value.long(7)
    assert len(reader.tables) == 2


def test_empty_cells_take_defaults() -> None:
    text = """#datatype,string,long,boolean,string
#group,false,false,false,false
#default,_result,3,,fallback
,result,table,flag,note
,,,,
"""
    [record] = read_records(text)
    assert record.values["result"] == Value.string("_result")
    assert record.values["table"] == Value.long(3)
    assert record.values["flag"] == Value.boolean(True)
    assert record.values["note"] == Value.string("fallback")


@pytest.mark.parametrize("data_type", ["double", "long", "unsignedLong", "dateTime:RFC3339"])
def test_empty_numeric_cell_without_default_fails(data_type) -> None:
    text = f"""#datatype,string,{data_type}
#group,false,false
#default,,
,name,_value
,a,
"""
    with pytest.raises(ValueParseError) as excinfo:
        read_records(text)
    assert excinfo.value.column == "_value"


def test_duplicate_column_names_keep_last_cell() -> None:
    text = """#datatype,string,long,long
#group,false,false,false
#default,,,
,name,count,count
,a,1,2
"""
    [record] = read_records(text)
    assert record.values == {"name": Value.string("a"), "count": Value.long(2)}


def test_empty_string_cell_without_default_is_empty_string() -> None:
    text = """#datatype,string,string
#group,false,false
#default,,
,name,note
,a,
"""
    [record] = read_records(text)
    assert record.values["note"] == Value.string("")


def test_error_table_raises_message_and_reference() -> None:
    text = """#datatype,string,string
#group,true,true
#default,,
,error,reference
,,some message,ref123
"""
    with pytest.raises(FluxQueryError) as excinfo:
        read_records(text)
    assert str(excinfo.value) == "some message,ref123"
    assert excinfo.value.message == "some message"
    assert excinfo.value.reference == "ref123"


def test_error_table_without_reference() -> None:
    text = """#datatype,string,string
#group,true,true
#default,,
,error,reference
,failed to parse query,
"""
    with pytest.raises(FluxQueryError) as excinfo:
        read_records(text)
    assert str(excinfo.value) == "failed to parse query"
    assert excinfo.value.reference is None


def test_error_row_without_message_keeps_reference() -> None:
    text = """#datatype,string,string
#group,true,true
#default,,
,error,reference
,,897
"""
    with pytest.raises(FluxQueryError) as excinfo:
        read_records(text)
    assert str(excinfo.value) == "unknown query error,897"
    assert excinfo.value.reference == "897"


def test_error_table_without_rows() -> None:
    text = """#datatype,string,string
#group,true,true
#default,,
,error,reference
"""
    with pytest.raises(FluxQueryError, match="unknown query error"):
        read_records(text)


def test_row_width_mismatch_is_rejected() -> None:
    text = """#datatype,string,long,double
#group,false,false,false
#default,_result,,
,result,table,_value
,,0,1.5,extra
"""
    with pytest.raises(ColumnCountMismatchError, match="4 vs 3"):
        read_records(text)


def test_short_row_is_rejected() -> None:
    text = """#datatype,string,long,double
#group,false,false,false
#default,_result,,
,result,table,_value
,,0
"""
    with pytest.raises(ColumnCountMismatchError):
        read_records(text)


def test_missing_datatype_annotation() -> None:
    text = """#group,false,false
#default,,
,a,b
,x,y
"""
    with pytest.raises(MalformedAnnotationError, match="datatype annotation not found"):
        read_records(text)


def test_data_before_annotations() -> None:
    with pytest.raises(MalformedAnnotationError, match="annotations not found"):
        read_records(",a,b\n,x,y\n")


def test_unknown_annotation_row() -> None:
    text = "#datatype,string\n#bogus,x\n"
    with pytest.raises(MalformedAnnotationError, match="invalid first cell"):
        read_records(text)


def test_unknown_datatype() -> None:
    with pytest.raises(UnknownDataTypeError):
        read_records("#datatype,string,float\n")


def test_truncated_annotation_block() -> None:
    with pytest.raises(MalformedAnnotationError):
        read_records("#datatype,string,long\n#group,false,false\n")


def test_bad_cell_surfaces_value_parse_error() -> None:
    text = """#datatype,string,long
#group,false,false
#default,,
,name,count
,a,lots
"""
    with pytest.raises(ValueParseError) as excinfo:
        read_records(text)
    assert excinfo.value.column == "count"


def test_quoted_cells_keep_commas() -> None:
    text = """#datatype,string,string
#group,false,false
#default,,
,name,note
,a,"x, y"
"""
    [record] = read_records(text)
    assert record.values["note"] == Value.string("x, y")


def test_empty_body_yields_nothing() -> None:
    assert read_records("") == []
    assert read_records("\r\n\r\n") == []
    assert FluxResponse("").is_empty() is True


def test_flux_response_can_be_read_twice() -> None:
    response = FluxResponse(SAMPLE)
    assert response.is_empty() is False
    assert len(list(response)) == 2
    assert len(list(response.records())) == 2


def test_reader_is_single_pass() -> None:
    reader = AnnotatedTableReader(SAMPLE)
    assert len(list(reader)) == 2
    assert list(reader) == []
