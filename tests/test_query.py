"""Tests for the query pipeline."""

import pytest

from safe_tables import QueryState, TypeDef
from safe_tables.errors import (
    ColumnNotFoundError,
    DuplicateColumnError,
    TypeMismatchError,
    WhereSyntaxError,
)


class TestQueryPipeline:
    """Tests for filter, rows and execute."""

    def test_filter_project_extract(self, users):
        """Test the users scenario: ages over 20 give ids [1, 3]."""
        result = users.filter(lambda r: r.get("age", int) > 20).rows(["id"]).execute()
        assert result.get("id", int) == [1, 3]
        assert result.columns == ["id"]

    def test_extract_wrong_type(self, users):
        """Test extracting an int64 column as str fails."""
        result = users.filter(lambda r: r.get("age", int) > 20).rows(["id"]).execute()
        with pytest.raises(TypeMismatchError):
            result.get("id", str)

    def test_extract_by_kind(self, users):
        """Test extraction with an exact kind."""
        result = users.query().execute()
        assert result.get("age", TypeDef.INT64) == [25, 19, 31]
        with pytest.raises(TypeMismatchError):
            result.get("age", TypeDef.INT32)

    def test_extract_unprojected_column(self, users):
        """Test extracting a column outside the projection."""
        result = users.rows(["id"]).execute()
        with pytest.raises(ColumnNotFoundError):
            result.get("name", str)

    def test_get_where_alias(self, users):
        """Test get_where filters like filter."""
        result = users.get_where(lambda r: r["name"] == "Bo").execute()
        assert result.rows == [{"id": 2, "name": "Bo", "age": 19}]

    def test_projection_order(self, users):
        """Test the projection defines column order."""
        result = users.rows(["age", "id"]).execute()
        assert result.columns == ["age", "id"]
        assert list(result.rows[0]) == ["age", "id"]

    def test_filter_may_use_unprojected_columns(self, users):
        """Test filtering happens before projection."""
        result = users.rows(["name"]).filter(lambda r: r.get("age", int) < 30).execute()
        assert result.get("name", str) == ["Ann", "Bo"]

    def test_filters_combine_with_and(self, users):
        """Test chained filters all apply."""
        query = users.filter(lambda r: r["age"] > 18).filter(lambda r: r["id"] != 3)
        assert query.execute().get("id", int) == [1, 2]

    def test_unknown_projection_column(self, users):
        """Test projecting a missing column."""
        with pytest.raises(ColumnNotFoundError):
            users.rows(["id", "email"])

    def test_duplicate_projection_column(self, users):
        """Test projecting a column twice."""
        with pytest.raises(DuplicateColumnError):
            users.rows(["id", "id"])

    def test_predicate_type_mismatch_propagates(self, users):
        """Test a mistyped get inside a predicate surfaces to the caller."""
        query = users.filter(lambda r: r.get("age", str) == "25")
        with pytest.raises(TypeMismatchError):
            query.execute()

    def test_deterministic(self, users):
        """Test repeated execution returns the same sequence."""
        query = users.filter(lambda r: r.get("age", int) > 20).rows(["id"])
        first = query.execute().get("id", int)
        second = query.execute().get("id", int)
        assert first == second == [1, 3]

    def test_empty_result(self, users):
        """Test a filter matching nothing."""
        result = users.filter(lambda r: False).execute()
        assert len(result) == 0
        assert not result
        assert result.get("id", int) == []
        assert result.first() is None


class TestQueryState:
    """Tests for query immutability and state."""

    def test_builders_return_new_queries(self, users):
        """Test builder methods never mutate the receiver."""
        base = users.query()
        filtered = base.filter(lambda r: True)
        projected = filtered.rows(["id"])
        assert base.state is QueryState.UNBUILT
        assert filtered.state is QueryState.FILTERED
        assert projected.state is QueryState.PROJECTED
        assert base.predicates == ()
        assert filtered.projection is None

    def test_executed_state(self, users):
        """Test the result records the executed query."""
        result = users.rows(["id"]).execute()
        assert result.query.state is QueryState.EXECUTED

    def test_execute_reads_rows_at_execute_time(self, users):
        """Test a query built before an insert sees the inserted row."""
        query = users.filter(lambda r: r.get("age", int) > 20).rows(["id"])
        users.insert([4, "Di", 40])
        assert query.execute().get("id", int) == [1, 3, 4]

    def test_limit_and_offset(self, users):
        """Test paging over matching rows."""
        assert users.query().limit(2).execute().get("id", int) == [1, 2]
        assert users.query().offset(1).execute().get("id", int) == [2, 3]
        assert users.query().offset(1).limit(1).execute().get("id", int) == [2]
        assert users.query().limit(0).execute().rows == []

    def test_negative_limit(self, users):
        """Test negative paging values are rejected."""
        with pytest.raises(ValueError):
            users.query().limit(-1)
        with pytest.raises(ValueError):
            users.query().offset(-1)

    def test_count(self, users):
        """Test counting matches without materializing."""
        assert users.filter(lambda r: r["age"] > 20).count() == 2


class TestWhereQueries:
    """Tests for where-expression filters."""

    def test_where_expression(self, users):
        """Test the users scenario with a where-expression."""
        assert users.where("age > 20").rows(["id"]).execute().get("id", int) == [1, 3]

    def test_where_compound(self, users):
        """Test and/or/not and parentheses."""
        assert users.where('age > 20 and name starts with "C"').execute().get("id", int) == [3]
        assert users.where("age < 20 or id == 1").execute().get("id", int) == [1, 2]
        assert users.where("not (age < 20)").execute().get("id", int) == [1, 3]

    def test_where_matches(self, users):
        """Test regex matching."""
        assert users.where("name matches /^[AB]/").execute().get("name", str) == ["Ann", "Bo"]

    def test_where_string_filter_argument(self, users):
        """Test filter() accepts an expression string."""
        assert users.filter("name == 'Bo'").execute().get("id", int) == [2]

    def test_where_type_mismatch(self, users):
        """Test comparing a column with a literal of another kind."""
        with pytest.raises(TypeMismatchError):
            users.where('age == "25"').execute()
        with pytest.raises(TypeMismatchError):
            users.where("name > 3").execute()

    def test_where_unknown_column(self, users):
        """Test naming a missing column."""
        with pytest.raises(ColumnNotFoundError):
            users.where("email == 'x'").execute()

    def test_where_syntax_error(self, users):
        """Test malformed expressions fail when the query is built."""
        with pytest.raises(WhereSyntaxError):
            users.where("age >")
