"""Result-window paging."""

import math

import pytest

from catalog.clauses import FilterClause
from catalog.planner import ResultWindow, plan_pages


def _clauses(count):
    return [FilterClause("productId", str(index)) for index in range(count)]


@pytest.mark.parametrize(("count", "page_size"), [(1, 50), (50, 50), (51, 50), (120, 50), (7, 3)])
def test_page_count_is_ceiling(count, page_size):
    pages = plan_pages(_clauses(count), page_size)

    assert len(pages) == math.ceil(count / page_size)


def test_no_clauses_means_no_pages():
    assert plan_pages([], 50) == []


def test_pages_share_the_clause_set_and_differ_by_window():
    clauses = _clauses(120)

    pages = plan_pages(clauses, 50)

    assert [page.window.header_value for page in pages] == ["0-49", "50-99", "100-149"]
    assert all(page.clauses == tuple(clauses) for page in pages)


def test_page_size_must_be_positive():
    with pytest.raises(ValueError):
        plan_pages(_clauses(1), 0)


def test_result_window_parse():
    assert ResultWindow.parse("0-49") == ResultWindow(0, 49)
    with pytest.raises(ValueError):
        ResultWindow.parse("49")
    with pytest.raises(ValueError):
        ResultWindow.parse("10-2")
