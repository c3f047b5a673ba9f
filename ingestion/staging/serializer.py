"""
Headerless, positional CSV rendering of warehouse rows.

Columns are written in WAREHOUSE_COLUMNS order, which is also the order of
the schema declared on the BigQuery load job. Timestamps are rendered in
``CsvSerializationConfig.timezone`` with
``CsvSerializationConfig.timestamp_format``; with the defaults (UTC, no
offset) BigQuery reads them as UTC instants.

Null vs empty follows BigQuery's CSV rules: an empty unquoted field is
NULL, a quoted empty field ``""`` is the empty string. STRING values are
therefore always quoted; other values are quoted only when they contain
the delimiter, the quote character or a line break.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from core.exceptions import TransformationError
from schemas.records import TargetRecord, WAREHOUSE_COLUMNS


@dataclass(frozen=True)
class CsvSerializationConfig:
    timestamp_format: str = "%Y-%m-%d %H:%M:%S.%f"
    timezone: str = "UTC"
    delimiter: str = ","
    quotechar: str = '"'
    columns: Tuple[Tuple[str, str], ...] = field(default_factory=lambda: tuple(WAREHOUSE_COLUMNS))

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def column_names(self) -> List[str]:
        return [name for name, _ in self.columns]


def _quote(text: str, config: CsvSerializationConfig) -> str:
    q = config.quotechar
    return q + text.replace(q, q + q) + q


def _render(value: Any, column_type: str, config: CsvSerializationConfig) -> str:
    if value is None:
        return ""
    if column_type == "STRING":
        return _quote(value, config)
    if column_type == "TIMESTAMP":
        text = value.astimezone(config.tz).strftime(config.timestamp_format)
    else:
        text = str(value)
    if any(c in text for c in (config.delimiter, config.quotechar, "\n", "\r")):
        return _quote(text, config)
    return text


def _parse(value: Optional[str], column_type: str, config: CsvSerializationConfig) -> Any:
    if value is None:
        return None
    if column_type == "INT64":
        return int(value)
    if column_type == "TIMESTAMP":
        parsed = datetime.strptime(value, config.timestamp_format)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=config.tz)
        return parsed.astimezone(timezone.utc)
    return value


def _split_rows(text: str, config: CsvSerializationConfig) -> Iterator[List[Optional[str]]]:
    """
    Yield rows of fields; an empty unquoted field is None, a quoted one a str.

    Quoted fields may hold the delimiter, doubled quote characters and
    line breaks.
    """
    q, sep = config.quotechar, config.delimiter
    pos, end = 0, len(text)
    while pos < end:
        row: List[Optional[str]] = []
        while True:
            if text.startswith(q, pos):
                chunks = []
                pos += 1
                while True:
                    close = text.find(q, pos)
                    if close == -1:
                        raise TransformationError(
                            "Unterminated quoted field in staged CSV",
                            context={"offset": pos}
                        )
                    chunks.append(text[pos:close])
                    pos = close + 1
                    if text.startswith(q, pos):
                        chunks.append(q)
                        pos += 1
                    else:
                        break
                row.append("".join(chunks))
            else:
                stop = pos
                while stop < end and text[stop] not in (sep, "\n", "\r"):
                    stop += 1
                row.append(text[pos:stop] or None)
                pos = stop
            if text.startswith(sep, pos):
                pos += len(sep)
                continue
            if text.startswith("\r\n", pos):
                pos += 2
            elif pos < end:
                pos += 1
            break
        yield row


def serialize_records(records: Sequence[TargetRecord], config: CsvSerializationConfig) -> bytes:
    """Render ``records`` one per line, no header, change_timestamp excluded."""
    lines = [
        config.delimiter.join(
            _render(getattr(record, name), column_type, config) for name, column_type in config.columns
        ) + "\n"
        for record in records
    ]
    return "".join(lines).encode("utf-8")


def parse_records(data: bytes, config: CsvSerializationConfig) -> List[TargetRecord]:
    """Column-positional inverse of serialize_records (change_timestamp stays None)."""
    records = []
    for row in _split_rows(data.decode("utf-8"), config):
        if len(row) != len(config.columns):
            raise TransformationError(
                f"Staged CSV row has {len(row)} fields, expected {len(config.columns)}",
                context={"row": row}
            )
        values = {
            name: _parse(value, column_type, config)
            for (name, column_type), value in zip(config.columns, row)
        }
        records.append(TargetRecord(**values))
    return records
