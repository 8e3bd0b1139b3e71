"""
Period resolver: YTD/MTD/QTD, last-year variants, quarters, degenerate inputs.
"""
import pandas as pd

from bizpulse.sales_analytics.periods import resolve_period, resolve_reference, is_year_pinning

from conftest import make_rows


def _selected(rows, *args, **kwargs):
    mask = resolve_period(rows, *args, **kwargs)
    return sorted(zip(rows.loc[mask, 'year'], rows.loc[mask, 'month']))


def test_ytd_with_explicit_year_and_month(sample_rows) -> None:
    assert _selected(sample_rows, 'YTD', 2024, 'Feb') == [(2024, 'Feb'), (2024, 'Jan')]


def test_ytd_defaults_to_latest_year_and_month(sample_rows) -> None:
    selected = _selected(sample_rows, 'YTD')
    assert {year for year, _ in selected} == {2024}
    assert len(selected) == 4


def test_mtd_uses_latest_month_of_target_year(sample_rows) -> None:
    assert _selected(sample_rows, 'MTD', 2024) == [(2024, 'Mar'), (2024, 'Mar')]


def test_qtd_stops_at_reference_month(sample_rows) -> None:
    assert _selected(sample_rows, 'QTD', 2024, 'Feb') == [(2024, 'Feb'), (2024, 'Jan')]


def test_lytd_uses_current_year_reference_month(sample_rows) -> None:
    assert _selected(sample_rows, 'LYTD', 2024, 'Feb') == [(2023, 'Feb'), (2023, 'Jan')]


def test_lmtd_anchors_on_latest_current_year_month(sample_rows) -> None:
    # Latest 2024 month is Mar, so LMTD is Mar 2023 (Apr 2023 excluded)
    assert _selected(sample_rows, 'LMTD', 2024) == [(2023, 'Mar')]


def test_lqtd(sample_rows) -> None:
    assert _selected(sample_rows, 'LQTD', 2024, 'Mar') == [(2023, 'Feb'), (2023, 'Jan'), (2023, 'Mar')]


def test_quarter_token_spans_all_years(sample_rows) -> None:
    selected = _selected(sample_rows, 'Q1')
    assert {year for year, _ in selected} == {2023, 2024}
    assert len(selected) == 7
    assert _selected(sample_rows, 'Q2') == [(2023, 'Apr')]


def test_tokens_are_case_insensitive(sample_rows) -> None:
    assert _selected(sample_rows, ' ytd ', 2024, 'Feb') == _selected(sample_rows, 'YTD', 2024, 'Feb')


def test_unknown_or_missing_token_is_noop(sample_rows) -> None:
    assert resolve_period(sample_rows, 'FYTD').all()
    assert resolve_period(sample_rows, None).all()
    assert resolve_period(sample_rows, '').all()


def test_zero_rows_accepts_everything() -> None:
    rows = make_rows()
    mask = resolve_period(rows, 'YTD', 2024, 'Jan')
    assert len(mask) == 0


def test_unresolvable_month_keeps_year_pin_only(sample_rows) -> None:
    # No 2025 rows: reference month unresolved, LMTD pins 2024 without month scope
    selected = _selected(sample_rows, 'LMTD', 2025)
    assert {year for year, _ in selected} == {2024}
    assert len(selected) == 4


def test_skip_year_filter_keeps_month_scope(sample_rows) -> None:
    selected = _selected(sample_rows, 'YTD', 2024, 'Feb', skip_year_filter=True)
    assert selected == [(2023, 'Feb'), (2023, 'Jan'), (2024, 'Feb'), (2024, 'Jan')]


def test_ytd_count_monotonic_in_month() -> None:
    months = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']
    rows = make_rows(*[
        {'year': 2024, 'month': m, 'gSales': i}
        for i, m in enumerate(months * 2)
        if i % 5 != 3
    ])
    counts = [int(resolve_period(rows, 'YTD', 2024, m).sum()) for m in months]
    assert counts == sorted(counts)
    assert counts[-1] == len(rows)


def test_resolve_reference(sample_rows) -> None:
    ref = resolve_reference(sample_rows, 'lqtd', None, 'All')
    assert ref.target_year == 2024
    assert ref.reference_month == 'Mar'
    assert ref.month_index == 3
    assert ref.quarter == 1
    assert ref.effective_year == 2023


def test_resolve_reference_normalises_explicit_month(sample_rows) -> None:
    ref = resolve_reference(sample_rows, 'QTD', 2024, 'august')
    assert ref.reference_month == 'Aug'
    assert ref.quarter == 3


def test_is_year_pinning() -> None:
    assert is_year_pinning('ytd')
    assert is_year_pinning('LQTD')
    assert not is_year_pinning('Q1')
    assert not is_year_pinning(None)


def test_mask_is_aligned_with_index() -> None:
    rows = make_rows(
        {'year': 2024, 'month': 'Jan'},
        {'year': 2024, 'month': 'Feb'},
    )
    rows.index = pd.Index([10, 20])
    mask = resolve_period(rows, 'MTD', 2024, 'Feb')
    assert list(mask.index) == [10, 20]
    assert list(mask) == [False, True]
