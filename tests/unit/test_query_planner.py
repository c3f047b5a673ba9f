"""
Unit tests for the keyset query planner
"""

import pytest
from collections import OrderedDict
from core.exceptions import ConfigurationError
from ingestion.query_planner import KeysetQueryPlanner, SortOrder
from ingestion.jobs.auction_winning_bid import build_planner

SELECT = "a.id AS auction_id, a.modified_at AS last_modified"
FROM = "auctions a"
WHERE = "a.modified_at > :last_processed_timestamp"


@pytest.fixture
def planner():
    return KeysetQueryPlanner(SELECT, FROM, WHERE)


class TestQueryShape:
    """Generated SQL"""

    def test_first_page_query(self, planner):
        assert planner.first_page_query(3) == (
            "SELECT * FROM (SELECT a.id AS auction_id, a.modified_at AS last_modified "
            "FROM auctions a WHERE a.modified_at > :last_processed_timestamp) AS derived_table "
            "ORDER BY last_modified ASC, auction_id ASC LIMIT 3"
        )

    def test_remaining_pages_query_bounds_by_cursor(self, planner):
        sql = planner.remaining_pages_query(500)

        assert sql.startswith("SELECT * FROM (SELECT ")
        assert ") AS derived_table WHERE " in sql
        assert (
            "((last_modified > :_last_modified) OR "
            "(last_modified = :_last_modified AND auction_id > :_auction_id))"
        ) in sql
        assert sql.endswith("ORDER BY last_modified ASC, auction_id ASC LIMIT 500")

    def test_default_sort_keys(self, planner):
        assert planner.sort_key_names == ["last_modified", "auction_id"]

    def test_three_keys_expand_lexicographically(self):
        planner = KeysetQueryPlanner(
            SELECT, FROM, WHERE,
            sort_keys=OrderedDict([("a", SortOrder.ASCENDING), ("b", SortOrder.ASCENDING), ("c", SortOrder.ASCENDING)]),
        )

        assert planner.after_cursor_clause() == (
            "((a > :_a) OR (a = :_a AND b > :_b) OR (a = :_a AND b = :_b AND c > :_c))"
        )

    def test_descending_key_uses_less_than(self):
        planner = KeysetQueryPlanner(
            SELECT, FROM, WHERE,
            sort_keys=OrderedDict([("last_modified", SortOrder.DESCENDING), ("auction_id", SortOrder.ASCENDING)]),
        )

        assert "(last_modified < :_last_modified)" in planner.after_cursor_clause()
        assert "ORDER BY last_modified DESC, auction_id ASC" in planner.first_page_query(10)

    def test_cursor_params(self, planner):
        assert planner.cursor_params(("2024-01-01 00:00:00", 42)) == {
            "_last_modified": "2024-01-01 00:00:00",
            "_auction_id": 42,
        }

    def test_cursor_params_wrong_length(self, planner):
        with pytest.raises(ValueError):
            planner.cursor_params((42,))

    def test_job_planner_uses_greatest_of_both_sides(self):
        sql = build_planner().first_page_query(1000)

        assert "GREATEST(a.modified_at, p.modified_at) AS last_modified" in sql
        assert "auctions a JOIN product p ON a.product_id = p.id" in sql
        assert "GREATEST(a.modified_at, p.modified_at) > :last_processed_timestamp" in sql


class TestValidation:
    """Rejected configurations"""

    @pytest.mark.parametrize("select_clause,from_clause,where_clause", [
        ("", FROM, WHERE),
        (SELECT, "   ", WHERE),
        (SELECT, FROM, ""),
    ])
    def test_blank_clause(self, select_clause, from_clause, where_clause):
        with pytest.raises(ConfigurationError):
            KeysetQueryPlanner(select_clause, from_clause, where_clause)

    def test_empty_sort_keys(self):
        with pytest.raises(ConfigurationError):
            KeysetQueryPlanner(SELECT, FROM, WHERE, sort_keys=OrderedDict())

    def test_qualified_sort_key_rejected(self):
        with pytest.raises(ConfigurationError):
            KeysetQueryPlanner(SELECT, FROM, WHERE, sort_keys={"a.id": SortOrder.ASCENDING})

    def test_where_clause_without_watermark_param(self):
        with pytest.raises(ConfigurationError) as exc_info:
            KeysetQueryPlanner(SELECT, FROM, "a.modified_at > '2024-01-01'")

        assert exc_info.value.context["parameter"] == "where_clause"

    def test_where_clause_with_similar_param_name(self):
        with pytest.raises(ConfigurationError):
            KeysetQueryPlanner(SELECT, FROM, "a.modified_at > :last_processed_timestamp_utc")

    @pytest.mark.parametrize("page_size", [0, -1])
    def test_page_size_must_be_positive(self, planner, page_size):
        with pytest.raises(ConfigurationError):
            planner.first_page_query(page_size)
        with pytest.raises(ConfigurationError):
            planner.remaining_pages_query(page_size)
