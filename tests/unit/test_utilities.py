"""Datetime, JSON and response envelope helpers."""

from datetime import date, datetime, timedelta, timezone

import pytest
from bson import ObjectId

from hospital_meals.utils.datetime_utils import (
    DateParseError,
    parse_datetime,
    to_iso,
    utc_now,
)
from hospital_meals.utils.json_utils import to_json_compatible
from hospital_meals.utils.response import (
    PaginationMeta,
    format_api_response,
    format_paginated_response,
)


class TestDatetimeUtils:

    def test_utc_now_is_naive_milliseconds(self):
        now = utc_now()
        assert now.tzinfo is None
        assert now.microsecond % 1000 == 0

    def test_date_only_is_midnight(self):
        assert parse_datetime('2024-03-01') == datetime(2024, 3, 1)

    def test_offset_is_converted_to_utc(self):
        parsed = parse_datetime('2024-03-01T10:30:00.123456+05:30')
        assert parsed == datetime(2024, 3, 1, 5, 0, 0, 123000)

    def test_date_and_aware_datetime_inputs(self):
        assert parse_datetime(date(2024, 1, 2)) == datetime(2024, 1, 2)
        aware = datetime(2024, 1, 2, 3, tzinfo=timezone(timedelta(hours=1)))
        assert parse_datetime(aware) == datetime(2024, 1, 2, 2)

    @pytest.mark.parametrize('value', ['', '   ', 'yesterday', '2024-13-01', 42, None])
    def test_unparseable(self, value):
        with pytest.raises(DateParseError):
            parse_datetime(value)

    def test_to_iso(self):
        assert to_iso(datetime(2024, 3, 1, 5, 0, 0, 123000)) == '2024-03-01T05:00:00.123Z'
        assert to_iso(None) is None


class TestJsonCompatible:

    def test_nested_conversion(self):
        oid = ObjectId()
        value = {
            '_id': oid,
            'createdAt': datetime(2024, 3, 1),
            'assignedStaff': [{'staffId': oid, 'role': 'Kitchen Staff'}],
            'tags': ('a', 'b'),
            'age': 54,
        }
        assert to_json_compatible(value) == {
            '_id': str(oid),
            'createdAt': '2024-03-01T00:00:00.000Z',
            'assignedStaff': [{'staffId': str(oid), 'role': 'Kitchen Staff'}],
            'tags': ['a', 'b'],
            'age': 54,
        }


class TestPaginationMeta:

    @pytest.mark.parametrize('page,limit,total,pages,has_next,has_prev', [
        (1, 10, 0, 0, False, False),
        (1, 10, 10, 1, False, False),
        (2, 10, 25, 3, True, True),
        (3, 10, 25, 3, False, True),
    ])
    def test_build(self, page, limit, total, pages, has_next, has_prev):
        meta = PaginationMeta.build(page, limit, total)
        assert meta.totalPages == pages
        assert meta.hasNextPage is has_next
        assert meta.hasPrevPage is has_prev


class TestResponseEnvelope:

    def test_data_is_included(self, app):
        with app.app_context():
            response, status = format_api_response({'_id': ObjectId('65f1a2b3c4d5e6f708192a3b')},
                                                   "Created", 201)
        assert status == 201
        assert response.get_json() == {
            'success': True,
            'message': "Created",
            'data': {'_id': '65f1a2b3c4d5e6f708192a3b'},
        }

    def test_data_key_is_omitted_when_empty(self, app):
        with app.app_context():
            response, status = format_api_response(message="Deleted")
        assert status == 200
        assert response.get_json() == {'success': True, 'message': "Deleted"}

    def test_paginated_shape(self, app):
        with app.app_context():
            response, _ = format_paginated_response([{'name': 'a'}], 1, 10, 1)
        body = response.get_json()
        assert body['data']['items'] == [{'name': 'a'}]
        assert body['data']['pagination'] == {
            'currentPage': 1,
            'totalPages': 1,
            'totalResults': 1,
            'limit': 10,
            'hasNextPage': False,
            'hasPrevPage': False,
        }
