"""Page-number pagination: parameter parsing and links."""

import pytest

from taskboard.core.errors import InvalidPagination
from taskboard.schemas.pagination import PageSpec, last_page, paginate, parse_page

BASE = "http://test/api/v1/tasks"


def test_parse_page_defaults():
    page = parse_page(None, None)
    assert (page.size, page.number) == (20, 1)
    assert page.offset == 0


def test_parse_page_numeric_strings():
    page = parse_page("5", "3")
    assert (page.size, page.number, page.offset) == (5, 3, 10)


@pytest.mark.parametrize(
    "size, number, parameter",
    [
        ("0", "1", "page[size]"),
        ("-2", "1", "page[size]"),
        ("abc", "1", "page[size]"),
        ("5", "0", "page[number]"),
        ("5", "x", "page[number]"),
        ("101", "1", "page[size]"),
    ],
)
def test_parse_page_rejects_bad_values(size, number, parameter):
    with pytest.raises(InvalidPagination) as exc_info:
        parse_page(size, number, max_size=100)
    assert exc_info.value.parameter == parameter
    assert exc_info.value.status == 400


def test_first_page_of_nine_items():
    links = paginate(9, PageSpec(size=5, number=1), BASE)
    assert links.first == f"{BASE}?page[size]=5&page[number]=1"
    assert links.last == f"{BASE}?page[size]=5&page[number]=2"
    assert links.prev is None
    assert links.next == f"{BASE}?page[size]=5&page[number]=2"


def test_second_page_of_nine_items():
    links = paginate(9, PageSpec(size=5, number=2), BASE)
    assert links.prev == f"{BASE}?page[size]=5&page[number]=1"
    assert links.next is None


def test_exact_multiple_has_no_extra_page():
    links = paginate(10, PageSpec(size=5, number=2), BASE)
    assert links.next is None
    assert links.last.endswith("page[number]=2")


def test_empty_collection_still_has_one_page():
    assert last_page(0, 20) == 1
    links = paginate(0, PageSpec(size=20, number=1), BASE)
    assert links.last == links.first
    assert links.next is None


def test_links_carry_other_parameters():
    links = paginate(9, PageSpec(size=5, number=1), BASE, {"sort": "-title", "include": "assignees"})
    assert links.next == f"{BASE}?page[size]=5&page[number]=2&sort=-title&include=assignees"
