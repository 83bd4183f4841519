import datetime
import decimal
import uuid
from dataclasses import dataclass

REFCURSOR_OID = 1790
REFCURSOR_TYPE_NAME = "refcursor"


@dataclass(frozen=True)
class PgType:
    name: str
    python_type: type


PG_TYPES: dict[int, PgType] = {
    # scalars
    16: PgType("bool", bool),
    17: PgType("bytea", bytes),
    18: PgType("char", str),
    19: PgType("name", str),
    20: PgType("int8", int),
    21: PgType("int2", int),
    23: PgType("int4", int),
    25: PgType("text", str),
    26: PgType("oid", int),
    114: PgType("json", object),
    700: PgType("float4", float),
    701: PgType("float8", float),
    1042: PgType("bpchar", str),
    1043: PgType("varchar", str),
    1082: PgType("date", datetime.date),
    1083: PgType("time", datetime.time),
    1114: PgType("timestamp", datetime.datetime),
    1184: PgType("timestamptz", datetime.datetime),
    1186: PgType("interval", datetime.timedelta),
    1700: PgType("numeric", decimal.Decimal),
    REFCURSOR_OID: PgType(REFCURSOR_TYPE_NAME, str),
    2950: PgType("uuid", uuid.UUID),
    3802: PgType("jsonb", object),
    # arrays
    1000: PgType("_bool", list[bool]),
    1007: PgType("_int4", list[int]),
    1009: PgType("_text", list[str]),
    1016: PgType("_int8", list[int]),
    2201: PgType("_refcursor", list[str]),
}


def type_name(type_code: object) -> str:
    """Name of a column type as reported in a DB-API description.

    psycopg and pg8000 report type OIDs; other drivers may report the
    name directly.
    """
    if isinstance(type_code, int):
        pg = PG_TYPES.get(type_code)
        return pg.name if pg is not None else str(type_code)
    return str(type_code)


def python_type(type_code: object) -> type:
    if isinstance(type_code, int):
        pg = PG_TYPES.get(type_code)
        if pg is not None:
            return pg.python_type
    return object


def is_refcursor(type_code: object) -> bool:
    return type_code == REFCURSOR_OID or type_name(type_code) == REFCURSOR_TYPE_NAME
