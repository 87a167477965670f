"""Mapping between spreadsheet rows and field-keyed records.

Append path: records -> column union -> rows -> values append.
Read path: values -> header row -> records (or the raw values).

Both directions work on an explicit ordered list of field names: the column
union of a batch when writing, the header row when reading.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from loguru import logger

from sheets_api.client import SheetClient, SheetInfo, SpreadsheetMetadata
from sheets_api.exceptions import SheetError, ValidationError

Scalar = str | int | float | bool
Record = dict[str, Any]

READ_FORMATS = ("objects", "raw")

# Columns addressed when appending to a tab picked from metadata
DEFAULT_COLUMNS = "A:Z"


@dataclass(frozen=True)
class RangeSpec:
    """A tab title plus a cell range, e.g. ``Leads!A:Z``.

    ``sheet_title`` is None when the range omits the tab, in which case the
    first tab of the spreadsheet is meant.
    """

    sheet_title: str | None
    cells: str

    @classmethod
    def parse(cls, text: str) -> RangeSpec:
        """Parse A1 range notation.

        Quoted titles (``'My tab'!A1:C``) are unquoted, with ``''`` read as a
        single quote.
        """
        text = text.strip()
        if not text:
            raise ValidationError("invalid_range", "Range must not be empty")

        if "!" not in text:
            return cls(sheet_title=None, cells=text)

        title, _, cells = text.rpartition("!")
        if len(title) >= 2 and title.startswith("'") and title.endswith("'"):
            title = title[1:-1].replace("''", "'")
        if not title:
            raise ValidationError("invalid_range", f"Range {text!r} has an empty sheet name")
        return cls(sheet_title=title, cells=cells)

    def to_a1(self) -> str:
        if self.sheet_title is None:
            return self.cells
        return f"{escape_sheet_title(self.sheet_title)}!{self.cells}"


@dataclass(frozen=True)
class AppendOutcome:
    """Result of appending a batch of records."""

    written: int

    def to_dict(self) -> dict[str, Any]:
        return {"ok": True, "written": self.written}


@dataclass(frozen=True)
class ReadOutcome:
    """Result of reading a range.

    ``count`` is the number of rows in the range, header row included, for
    both formats.
    """

    data: list[Any]
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"ok": True, "data": self.data, "count": self.count}


def escape_sheet_title(title: str) -> str:
    """Escape sheet title for use in A1 notation ranges.

    Sheet names containing spaces, special characters, or starting with
    digits need to be wrapped in single quotes.
    """
    needs_quoting = (
        " " in title
        or "'" in title
        or "!" in title
        or ":" in title
        or (len(title) > 0 and title[0].isdigit())
    )
    if needs_quoting:
        escaped = title.replace("'", "''")
        return f"'{escaped}'"
    return title


def validate_records(records: Any) -> list[Record]:
    """Check that records is a list of flat field -> scalar mappings."""
    if not isinstance(records, list):
        raise ValidationError("invalid_payload", "Records must be a list of objects")

    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise ValidationError(
                "invalid_payload", f"Record {index} is {type(record).__name__}, expected an object"
            )
        for key, value in record.items():
            if not isinstance(key, str):
                raise ValidationError(
                    "invalid_payload", f"Record {index} has a non-string field name"
                )
            if value is not None and not isinstance(value, Scalar):
                raise ValidationError(
                    "invalid_payload",
                    f"Field {key!r} of record {index} is {type(value).__name__}, expected a scalar",
                )
    return records


def column_union(records: Iterable[Mapping[str, Any]]) -> list[str]:
    """Ordered union of field names over a batch.

    Each field is placed at its first appearance, scanning records left to
    right and each record's fields in its own order.
    """
    columns: dict[str, None] = {}
    for record in records:
        for key in record:
            columns.setdefault(key, None)
    return list(columns)


def records_to_rows(
    records: Iterable[Mapping[str, Any]], columns: Sequence[str]
) -> list[list[Any]]:
    """Project each record onto columns; absent or null fields become ""."""
    rows = []
    for record in records:
        row = []
        for column in columns:
            value = record.get(column)
            row.append("" if value is None else value)
        rows.append(row)
    return rows


def rows_to_records(values: Sequence[Sequence[Any]]) -> list[Record]:
    """Turn a header row plus data rows into records.

    Missing trailing cells map to ""; cells beyond the header are dropped.
    The header row itself is never returned as a record.
    """
    if not values:
        return []

    header = [str(name) for name in values[0]]
    records: list[Record] = []
    for row in values[1:]:
        record: Record = {}
        for index, name in enumerate(header):
            record[name] = row[index] if index < len(row) else ""
        records.append(record)
    return records


class RowMapper:
    """Record-oriented read/append on top of a SheetClient.

    Example:
        >>> mapper = RowMapper(client)
        >>> await mapper.append_records(sheet_id, "Leads!A:Z", [{"name": "Ada"}])
        AppendOutcome(written=1)
        >>> await mapper.read_records(sheet_id, "Leads!A:Z")
        ReadOutcome(data=[{'name': 'Ada'}], count=2)
    """

    def __init__(self, client: SheetClient) -> None:
        self._client = client

    @property
    def client(self) -> SheetClient:
        return self._client

    async def append_records(
        self, spreadsheet_id: str, range_spec: str, records: list[Record]
    ) -> AppendOutcome:
        """Append records as rows, one row per record.

        The target tab must exist. A range without a tab appends to the first
        tab. One append call carries the whole batch, so it either lands
        completely or fails completely.

        Raises:
            ValidationError: If records are not a list of flat objects
            SheetError: sheet_not_found, not_found, or append_failed
            AuthError: If no token can be obtained
        """
        records = validate_records(records)
        spec = RangeSpec.parse(range_spec)

        metadata = await self._client.get_metadata(spreadsheet_id)
        target = self._resolve_sheet(metadata, spec)

        if not records:
            return AppendOutcome(written=0)

        columns = column_union(records)
        rows = records_to_rows(records, columns)

        if spec.sheet_title is not None:
            target_range = range_spec
        else:
            target_range = RangeSpec(target.title, DEFAULT_COLUMNS).to_a1()

        result = await self._client.append_values(spreadsheet_id, target_range, rows)
        logger.info(
            "Records appended",
            extra={
                "spreadsheet_id": spreadsheet_id,
                "range": target_range,
                "records": len(records),
                "written": result.updated_rows,
            },
        )
        return AppendOutcome(written=result.updated_rows)

    async def read_records(
        self, spreadsheet_id: str, range_spec: str, format: str = "objects"
    ) -> ReadOutcome:
        """Read a range as records keyed by the header row, or as raw rows.

        Raises:
            ValidationError: If format is not "objects" or "raw"
            SheetError: read_failed
            AuthError: If no token can be obtained
        """
        if format not in READ_FORMATS:
            raise ValidationError(
                "invalid_format", f"format must be one of {', '.join(READ_FORMATS)}, got {format!r}"
            )
        RangeSpec.parse(range_spec)

        values = await self._client.get_values(spreadsheet_id, range_spec)
        count = len(values)

        if format == "raw":
            return ReadOutcome(data=values, count=count)
        return ReadOutcome(data=rows_to_records(values), count=count)

    @staticmethod
    def _resolve_sheet(metadata: SpreadsheetMetadata, spec: RangeSpec) -> SheetInfo:
        if spec.sheet_title is None:
            if not metadata.sheets:
                raise SheetError("sheet_not_found", "No sheets found in spreadsheet")
            return metadata.sheets[0]

        sheet = metadata.find_sheet(spec.sheet_title)
        if sheet is not None:
            return sheet
        raise SheetError("sheet_not_found", f'Sheet "{spec.sheet_title}" not found')
