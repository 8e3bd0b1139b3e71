# bizpulse/sales_analytics/yoy_report.py
"""
Year-over-Year Reports (spreadsheet parity)

Each report row is a SUMIFS-style sum of cases / gSales / fGP for the
requested year and the year before, under the same non-year filters, with:
- LY Var      = current - previous
- LY Var %    = LY Var / |previous| * 100   (0 when previous is 0)
- fGP %       = fGP / gSales * 100 for both years, and its point variance

Combined rows (e.g. 'Grocery + Wholesale ROI') and the Grand Total are
recomputed from their summed absolute values, never by averaging the
member percentages.

Reports: business area, channel, brand, customer, monthly trend.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from .aggregations import Dimension, group_by, safe_divide, margin_percent
from .constants import MONTH_ORDER, COMBINED_ROWS, GRAND_TOTAL_LABEL
from .data_loader import ensure_schema
from .filters import FilterSpec, apply_filters

logger = logging.getLogger(__name__)

YOY_MEASURES = ('cases', 'gsales', 'fgp')

# Report name -> grouping (None = month)
REPORT_DIMENSIONS = {
    'business_area': Dimension.BUSINESS_AREA,
    'channel': Dimension.CHANNEL,
    'brand': Dimension.BRAND,
    'customer': Dimension.CUSTOMER,
    'monthly_trend': None,
}


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class MeasureComparison:
    """One measure for the requested year vs last year."""
    current: float = 0.0
    previous: float = 0.0

    @property
    def ly_var(self) -> float:
        return self.current - self.previous

    @property
    def ly_var_percent(self) -> float:
        return safe_divide(self.ly_var, abs(self.previous)) * 100


@dataclass(frozen=True)
class YoYReportRow:
    name: str
    cases: MeasureComparison
    gsales: MeasureComparison
    fgp: MeasureComparison
    row_type: str = 'row'  # 'row' | 'combined' | 'total'

    @classmethod
    def from_sums(cls, name: str, current: Dict[str, float], previous: Dict[str, float],
                  row_type: str = 'row') -> 'YoYReportRow':
        return cls(
            name=name,
            cases=MeasureComparison(current.get('cases', 0.0), previous.get('cases', 0.0)),
            gsales=MeasureComparison(current.get('gsales', 0.0), previous.get('gsales', 0.0)),
            fgp=MeasureComparison(current.get('fgp', 0.0), previous.get('fgp', 0.0)),
            row_type=row_type,
        )

    @property
    def fgp_percent(self) -> float:
        return margin_percent(self.fgp.current, self.gsales.current)

    @property
    def fgp_percent_ly(self) -> float:
        return margin_percent(self.fgp.previous, self.gsales.previous)

    @property
    def fgp_percent_var(self) -> float:
        """Point change of fGP %."""
        return self.fgp_percent - self.fgp_percent_ly

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'name': self.name, 'rowType': self.row_type}
        for key, comparison in (('cases', self.cases), ('gSales', self.gsales), ('fGP', self.fgp)):
            result[key] = comparison.current
            result[f'{key}Ly'] = comparison.previous
            result[f'{key}LyVar'] = comparison.ly_var
            result[f'{key}LyVarPercent'] = comparison.ly_var_percent
        result['fGPPercent'] = self.fgp_percent
        result['fGPPercentLy'] = self.fgp_percent_ly
        result['fGPPercentVar'] = self.fgp_percent_var
        return result


@dataclass(frozen=True)
class YoYReport:
    report: str
    year: Optional[int]
    previous_year: Optional[int]
    period: Optional[str]
    rows: List[YoYReportRow] = field(default_factory=list)
    combined_rows: List[YoYReportRow] = field(default_factory=list)
    grand_total: Optional[YoYReportRow] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'report': self.report,
            'year': self.year,
            'previousYear': self.previous_year,
            'period': self.period,
            'rows': [row.to_dict() for row in self.rows],
            'combinedRows': [row.to_dict() for row in self.combined_rows],
            'grandTotal': self.grand_total.to_dict() if self.grand_total else None,
        }

    @classmethod
    def empty(cls, report: str, spec: Optional[FilterSpec] = None) -> 'YoYReport':
        year = spec.year if spec else None
        return cls(
            report=report,
            year=year,
            previous_year=year - 1 if year is not None else None,
            period=spec.period if spec else None,
            grand_total=YoYReportRow.from_sums(GRAND_TOTAL_LABEL, {}, {}, 'total'),
        )


# =============================================================================
# BUILDERS
# =============================================================================

def _sums(rows: pd.DataFrame) -> Dict[str, float]:
    return {m: float(rows[m].sum()) if not rows.empty else 0.0 for m in YOY_MEASURES}


def _add(a: Dict[str, float], b: Dict[str, float]) -> Dict[str, float]:
    return {m: a.get(m, 0.0) + b.get(m, 0.0) for m in YOY_MEASURES}


def _grouped_sums(rows: pd.DataFrame, dimension: Optional[Dimension]) -> Dict[str, Dict[str, float]]:
    if dimension is None:
        return {month: _sums(items) for month, items in rows.groupby('month', sort=False)}
    return {name: _sums(items) for name, items in group_by(rows, dimension).items()}


def build_yoy_report(rows: pd.DataFrame, spec: Optional[FilterSpec], report: str) -> YoYReport:
    """
    Build one YoY report.

    Args:
        rows: Unfiltered canonical rows (already restricted to the caller's scope)
        spec: Request filter; its year is the requested year (latest year when absent)
        report: One of REPORT_DIMENSIONS

    Returns:
        YoYReport (leaf rows, combined rows, grand total)
    """
    if report not in REPORT_DIMENSIONS:
        raise ValueError(f"Unknown YoY report: {report}")

    df = ensure_schema(rows)
    spec = spec or FilterSpec()
    if df.empty:
        return YoYReport.empty(report, spec)

    if spec.year is not None:
        year = spec.year
    else:
        # Latest year the caller can actually see
        visible = apply_filters(df, spec.scope_only())
        if visible.empty:
            return YoYReport.empty(report, spec)
        year = int(visible['year'].max())
    previous_year = year - 1

    # Same non-year filters (and period month scope) for both years
    scoped = apply_filters(df, spec.with_changes(year=year, skip_year_filter=True))
    current = scoped[scoped['year'] == year]
    previous = scoped[scoped['year'] == previous_year]

    dimension = REPORT_DIMENSIONS[report]
    current_by = _grouped_sums(current, dimension)
    previous_by = _grouped_sums(previous, dimension)

    if dimension is None:
        names = [m for m in MONTH_ORDER if m in current_by or m in previous_by]
    else:
        names = list(dict.fromkeys(list(current_by) + list(previous_by)))

    empty_sums = _sums(current.iloc[0:0])
    leaf_rows = [
        YoYReportRow.from_sums(name, current_by.get(name, empty_sums), previous_by.get(name, empty_sums))
        for name in names
    ]
    if dimension is not None:
        # Stable: equal current revenue keeps first-occurrence order
        leaf_rows = sorted(leaf_rows, key=lambda r: r.gsales.current, reverse=True)

    combined_rows = []
    for label, members in COMBINED_ROWS.get(report, {}).items():
        present = [m for m in members if m in current_by or m in previous_by]
        if not present:
            continue
        cur, prev = dict(empty_sums), dict(empty_sums)
        for member in present:
            cur = _add(cur, current_by.get(member, empty_sums))
            prev = _add(prev, previous_by.get(member, empty_sums))
        combined_rows.append(YoYReportRow.from_sums(label, cur, prev, 'combined'))

    grand_total = YoYReportRow.from_sums(GRAND_TOTAL_LABEL, _sums(current), _sums(previous), 'total')

    logger.info(f"YoY {report} report: {len(leaf_rows)} rows, {year} vs {previous_year}")
    return YoYReport(
        report=report,
        year=year,
        previous_year=previous_year,
        period=spec.period,
        rows=leaf_rows,
        combined_rows=combined_rows,
        grand_total=grand_total,
    )
