"""
Natours API — Query-Builder Unit Tests
========================================

What we test:
    ✅ Field projection parsing (include, exclude, snake_case names)
    ✅ Pagination defaults and fallbacks
    ✅ Value casting per column type, CastError on garbage
    ✅ Unknown filter fields ignored, unknown operators rejected
    ✅ Sort falls back to -createdAt and always ends on the primary key
"""

from datetime import datetime

import pytest
from sqlalchemy import select

from natours.exceptions import CastError, ValidationError
from natours.models.tour import Tour
from natours.services.query_builder import (
    DEFAULT_LIMIT,
    FieldProjection,
    Pagination,
    QueryBuilder,
    cast_value,
)
from natours.services.tour_service import tour_resource


def build(params):
    return QueryBuilder(select(Tour), params, tour_resource.columns, primary_key=Tour.id)


def compiled(builder):
    return str(builder.statement.compile(compile_kwargs={"literal_binds": True}))


class TestFieldProjection:
    def test_include_list(self):
        projection = FieldProjection.parse("name,price")
        assert projection.include == ("name", "price")
        assert projection.exclude == ()

    def test_exclude_list(self):
        projection = FieldProjection.parse("-summary,-images")
        assert projection.exclude == ("summary", "images")
        assert not projection.include

    def test_allow_list_wins_when_mixed(self):
        projection = FieldProjection.parse("name,-price")
        assert projection.include == ("name",)
        assert projection.exclude == ()

    def test_snake_case_names_map_to_api_names(self):
        assert FieldProjection.parse("ratings_average").include == ("ratingsAverage",)

    def test_empty(self):
        assert FieldProjection.parse(None).is_empty
        assert FieldProjection.parse(" , ").is_empty


class TestPagination:
    def test_offset(self):
        builder = build({"page": "3", "limit": "10"}).paginate()
        assert builder.pagination == Pagination(page=3, limit=10)
        assert builder.pagination.offset == 20

    @pytest.mark.parametrize(
        "page,limit",
        [
            ("0", "-5"),
            ("abc", "1.5"),
            (None, None),
            ("99999999999999999999", "99999999999999999999"),
            (str(2**31), str(2**31)),
        ],
    )
    def test_invalid_values_fall_back_to_defaults(self, page, limit):
        params = {k: v for k, v in (("page", page), ("limit", limit)) if v is not None}
        pagination = build(params).paginate().pagination
        assert pagination.page == 1
        assert pagination.limit == DEFAULT_LIMIT


class TestCastValue:
    def test_numbers(self):
        assert cast_value("price", Tour.price, "397") == 397.0
        assert cast_value("duration", Tour.duration, "5") == 5

    def test_bool(self):
        assert cast_value("secret_tour", Tour.secret_tour, "false") is False
        assert cast_value("secret_tour", Tour.secret_tour, "TRUE") is True

    def test_datetime(self):
        assert cast_value("createdAt", Tour.created_at, "2021-04-25") == datetime(2021, 4, 25)

    def test_garbage_raises_cast_error(self):
        with pytest.raises(CastError) as exc_info:
            cast_value("price", Tour.price, "cheap")
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Invalid price: cheap."

    @pytest.mark.parametrize("raw", ["99999999999999999999", str(-(2**63) - 1)])
    def test_integer_out_of_range_raises_cast_error(self, raw):
        with pytest.raises(CastError) as exc_info:
            cast_value("duration", Tour.duration, raw)
        assert exc_info.value.status_code == 400

    def test_integer_at_64_bit_bound(self):
        assert cast_value("duration", Tour.duration, str(2**63 - 1)) == 2**63 - 1


class TestFilter:
    def test_operators_become_predicates(self):
        sql = compiled(build({"duration[gte]": "5", "price[lt]": "1500", "difficulty": "easy"}).filter())
        assert "tours.duration >= 5" in sql
        assert "tours.price < 1500" in sql
        assert "tours.difficulty = 'easy'" in sql

    def test_reserved_and_unknown_fields_are_ignored(self):
        sql = compiled(build({"sort": "price", "page": "2", "colour": "red"}).filter())
        assert "WHERE" not in sql

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            build({"duration[ne]": "5"}).filter()
        assert "Invalid filter operator 'ne'" in exc_info.value.message


class TestSort:
    def test_requested_order_with_tie_breaker(self):
        sql = compiled(build({"sort": "-ratingsAverage,price"}).sort())
        assert "ORDER BY tours.ratings_average DESC, tours.price ASC, tours.id ASC" in sql

    def test_default_sort(self):
        sql = compiled(build({}).sort())
        assert "ORDER BY tours.created_at DESC, tours.id ASC" in sql

    def test_unknown_sort_fields_fall_back_to_default(self):
        sql = compiled(build({"sort": "colour"}).sort())
        assert "ORDER BY tours.created_at DESC" in sql
