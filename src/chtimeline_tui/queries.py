"""
queries.py - ClickHouse SQL for flame-graph samples.

Builds the query that aggregates system.trace_log across a cluster into
(samples, stack) rows. Stacks are root-first: the trace type (or
allocate/free for memory traces) followed by demangled symbol#line frames.

    sql = flamegraph_query(FlamegraphParams(trace_type=TraceType.CPU,
                                            category=Category.TABLE,
                                            value="default.hits",
                                            from_time=t0, to_time=t1),
                           cluster="prod")
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class TraceType(str, Enum):
    MEMORY = "Memory"
    CPU = "CPU"
    REAL = "Real"
    MEMORY_SAMPLE = "MemorySample"


class Category(str, Enum):
    QUERY_HASH = "normalized_query_hash"
    TABLE = "tables"
    HOST = "hosts"
    ERROR = "errors"


_TEMPLATE = """
SELECT
    count() AS samples,
    concat(
        multiIf(
            position(toString(trace_type), 'Memory') > 0 AND sum(size) >= 0, 'allocate;',
            position(toString(trace_type), 'Memory') > 0 AND sum(size) < 0, 'free;',
            concat(toString(trace_type), ';')
        ),
        arrayStringConcat(arrayReverse(arrayMap(x -> concat(demangle(addressToSymbol(x)), '#', addressToLine(x)), trace)), ';')
    ) AS stack
FROM clusterAllReplicas('{cluster}', merge(system, '^trace_log'))
WHERE query_id IN (
    SELECT query_id
    FROM clusterAllReplicas('{cluster}', merge(system, '^query_log'))
    WHERE {filter}event_date >= toDate('{from_date}') AND event_date <= toDate('{to_date}')
    AND event_time >= parseDateTimeBestEffort('{from_time}') AND event_time <= parseDateTimeBestEffort('{to_time}')
)
AND trace_type = '{trace_type}'
GROUP BY trace, trace_type
SETTINGS allow_introspection_functions=1
"""

_FILTERS = {
    Category.QUERY_HASH: "normalized_query_hash = '{value}'\n    AND ",
    Category.ERROR: "normalized_query_hash = '{value}'\n    AND ",
    Category.TABLE: "hasAll(tables, ['{value}'])\n    AND ",
    Category.HOST: "hostName() = '{value}'\n    AND ",
}

TIME_FMT = "%Y-%m-%d %H:%M:%S %z"
DATE_FMT = "%Y-%m-%d"


@dataclass
class FlamegraphParams:
    """What to sample: trace type, optional category filter, time range."""
    trace_type: TraceType
    from_time: datetime
    to_time: datetime
    category: Optional[Category] = None
    value: str = ""


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _category_value(params: FlamegraphParams) -> str:
    if params.category == Category.ERROR:
        # error categories are "<error code>:<normalized query hash>"
        parts = params.value.split(":")
        if len(parts) != 2:
            raise ValueError(f"error category value must be CODE:HASH, got {params.value!r}")
        return parts[1]
    return params.value


def flamegraph_query(params: FlamegraphParams, cluster: str) -> str:
    """SQL returning (samples, stack) rows for `params` on `cluster`."""
    if params.from_time > params.to_time:
        raise ValueError("from_time is after to_time")
    if params.category is None:
        where = ""
    else:
        if not params.value:
            raise ValueError(f"category {params.category.value} needs a value")
        where = _FILTERS[params.category].format(value=_quote(_category_value(params)))
    return _TEMPLATE.format(
        cluster=_quote(cluster), filter=where,
        from_date=params.from_time.strftime(DATE_FMT),
        to_date=params.to_time.strftime(DATE_FMT),
        from_time=params.from_time.strftime(TIME_FMT),
        to_time=params.to_time.strftime(TIME_FMT),
        trace_type=TraceType(params.trace_type).value)
