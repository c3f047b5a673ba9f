"""
Keyset pagination SQL for a joined source relation.

The source query (a join with a derived change timestamp) has no natural
cursor, so paging is done by wrapping it in a derived table and bounding
each page by the sort-key values of the last row of the previous page:

    first page:  SELECT * FROM (<inner>) AS derived_table
                 ORDER BY k1 ASC, k2 ASC LIMIT n
    next pages:  SELECT * FROM (<inner>) AS derived_table
                 WHERE ((k1 > :_k1) OR (k1 = :_k1 AND k2 > :_k2))
                 ORDER BY k1 ASC, k2 ASC LIMIT n

The last sort key must be unique (the primary id) so that rows sharing a
change timestamp are neither skipped nor repeated across a page boundary.
"""

import enum
import re
from collections import OrderedDict
from typing import Any, Dict, Mapping, Optional, Sequence

from core.exceptions import ConfigurationError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

CURSOR_PARAM_PREFIX = "_"
DERIVED_TABLE_ALIAS = "derived_table"


class SortOrder(str, enum.Enum):
    ASCENDING = "ASC"
    DESCENDING = "DESC"


DEFAULT_SORT_KEYS: "OrderedDict[str, SortOrder]" = OrderedDict(
    [
        ("last_modified", SortOrder.ASCENDING),
        ("auction_id", SortOrder.ASCENDING),
    ]
)


class KeysetQueryPlanner:
    """
    Builds first-page and next-page queries over a composite ordering key.

    Args:
        select_clause: Projection of the inner query (without SELECT)
        from_clause: Relation of the inner query, joins included (without FROM)
        where_clause: Filter of the inner query (without WHERE); must reference
            the ``:<watermark_param>`` bound parameter
        sort_keys: Ordered mapping of derived-table column to sort order;
            the last key must be unique per row
        watermark_param: Name of the bound parameter carrying the watermark

    Raises:
        ConfigurationError: On blank clauses, missing sort keys, sort key
            names that are not plain identifiers, or a filter that does not
            use the watermark parameter
    """

    def __init__(
        self,
        select_clause: str,
        from_clause: str,
        where_clause: str,
        sort_keys: Optional[Mapping[str, SortOrder]] = None,
        watermark_param: str = "last_processed_timestamp",
    ):
        for name, value in (
            ("select_clause", select_clause),
            ("from_clause", from_clause),
            ("where_clause", where_clause),
        ):
            if not value or not value.strip():
                raise ConfigurationError(
                    f"{name} is required",
                    context={"parameter": name}
                )

        sort_keys = DEFAULT_SORT_KEYS if sort_keys is None else sort_keys
        if not sort_keys:
            raise ConfigurationError(
                "At least one sort key is required",
                context={"parameter": "sort_keys"}
            )
        for key in sort_keys:
            if not _IDENTIFIER.match(key):
                raise ConfigurationError(
                    f"Sort key must be a plain column name of the derived table: {key!r}",
                    context={"parameter": "sort_keys", "value": key}
                )

        if not re.search(rf":{re.escape(watermark_param)}\b", where_clause):
            raise ConfigurationError(
                f"where_clause must reference :{watermark_param}",
                context={"parameter": "where_clause", "value": where_clause}
            )

        self.select_clause = select_clause.strip()
        self.from_clause = from_clause.strip()
        self.where_clause = where_clause.strip()
        self.sort_keys: "OrderedDict[str, SortOrder]" = OrderedDict(
            (key, SortOrder(order)) for key, order in sort_keys.items()
        )
        self.watermark_param = watermark_param

    @property
    def sort_key_names(self) -> Sequence[str]:
        return list(self.sort_keys.keys())

    def inner_query(self) -> str:
        return f"SELECT {self.select_clause} FROM {self.from_clause} WHERE {self.where_clause}"

    def order_by_clause(self) -> str:
        return "ORDER BY " + ", ".join(
            f"{key} {order.value}" for key, order in self.sort_keys.items()
        )

    def after_cursor_clause(self) -> str:
        """Lexicographic "comes after the cursor" predicate over all sort keys."""
        keys = list(self.sort_keys.items())
        branches = []
        for i, (key, order) in enumerate(keys):
            comparison = ">" if order is SortOrder.ASCENDING else "<"
            terms = [f"{prev} = :{CURSOR_PARAM_PREFIX}{prev}" for prev, _ in keys[:i]]
            terms.append(f"{key} {comparison} :{CURSOR_PARAM_PREFIX}{key}")
            branches.append("(" + " AND ".join(terms) + ")")
        return "(" + " OR ".join(branches) + ")"

    def first_page_query(self, page_size: int) -> str:
        self._check_page_size(page_size)
        return (
            f"SELECT * FROM ({self.inner_query()}) AS {DERIVED_TABLE_ALIAS} "
            f"{self.order_by_clause()} LIMIT {page_size}"
        )

    def remaining_pages_query(self, page_size: int) -> str:
        self._check_page_size(page_size)
        return (
            f"SELECT * FROM ({self.inner_query()}) AS {DERIVED_TABLE_ALIAS} "
            f"WHERE {self.after_cursor_clause()} "
            f"{self.order_by_clause()} LIMIT {page_size}"
        )

    def cursor_params(self, cursor: Sequence[Any]) -> Dict[str, Any]:
        """Bind the sort-key values of the last emitted row to the next-page query."""
        if len(cursor) != len(self.sort_keys):
            raise ValueError(
                f"Cursor has {len(cursor)} values, expected {len(self.sort_keys)}"
            )
        return {
            f"{CURSOR_PARAM_PREFIX}{key}": value
            for key, value in zip(self.sort_keys, cursor)
        }

    @staticmethod
    def _check_page_size(page_size: int) -> None:
        if page_size < 1:
            raise ConfigurationError(
                f"page_size must be >= 1, got {page_size}",
                context={"parameter": "page_size", "value": page_size}
            )
