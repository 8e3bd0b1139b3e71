# bizpulse/sales_analytics/constants.py
"""
Constants for the Sales Analytics Module

Centralized configuration for:
- Month / quarter ordering
- Period tokens
- Dimension and measure column names
- Risk thresholds and variance weights
- Colours, channel regions and combined report rows
- Cache settings
"""

# =====================================================================
# MONTH ORDER
# =====================================================================

MONTH_ORDER = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"
]

MONTH_MAPPING = {
    1: "Jan", 2: "Feb", 3: "Mar", 4: "Apr",
    5: "May", 6: "Jun", 7: "Jul", 8: "Aug",
    9: "Sep", 10: "Oct", 11: "Nov", 12: "Dec"
}

MONTH_INDEX = {name: idx for idx, name in MONTH_MAPPING.items()}

# Alternative spellings seen in source files (lower-cased lookup)
MONTH_ALIASES = {
    "january": "Jan", "february": "Feb", "march": "Mar", "april": "Apr",
    "june": "Jun", "july": "Jul", "august": "Aug", "september": "Sep",
    "sept": "Sep", "october": "Oct", "november": "Nov", "december": "Dec",
}

# =====================================================================
# PERIOD DEFINITIONS
# =====================================================================

PERIOD_TYPES = ['YTD', 'MTD', 'QTD', 'LYTD', 'LMTD', 'LQTD']

QUARTER_PERIODS = ['Q1', 'Q2', 'Q3', 'Q4']

QUARTER_MONTHS = {
    1: [1, 2, 3],
    2: [4, 5, 6],
    3: [7, 8, 9],
    4: [10, 11, 12]
}

# Current-year token -> prior-year equivalent
LAST_YEAR_PERIODS = {
    'YTD': 'LYTD',
    'MTD': 'LMTD',
    'QTD': 'LQTD',
}

ALL_SENTINEL = 'All'

# =====================================================================
# ROW SCHEMA
# =====================================================================

# Source CSV header -> canonical column
SOURCE_COLUMNS = {
    'Year': 'year',
    'Month Name': 'month',
    'Business': 'business_area',
    'Channel': 'channel',
    'Brand': 'brand',
    'Category': 'category',
    'Sub-Cat': 'sub_category',
    'Customer': 'customer',
    'P+L Cust. Grp': 'customer_group',
    'Board Category': 'board_category',
    'SKU Channel': 'sku_channel',
    'Brand Type Name': 'brand_type',
    'Cases': 'cases',
    'gSales': 'gsales',
    'Price Downs': 'price_downs',
    'Perm. Disc.': 'perm_disc',
    'Group Cost': 'group_cost',
    'LTA': 'lta',
    'fGP': 'fgp',
    'Avg Cost': 'avg_cost',
}

DIMENSION_COLUMNS = [
    'business_area', 'channel', 'brand', 'category', 'sub_category',
    'customer', 'customer_group', 'board_category', 'sku_channel', 'brand_type',
]

MEASURE_COLUMNS = [
    'cases', 'gsales', 'price_downs', 'perm_disc',
    'group_cost', 'lta', 'fgp', 'avg_cost',
]

ROW_COLUMNS = ['year', 'month'] + DIMENSION_COLUMNS + MEASURE_COLUMNS

# =====================================================================
# BUSINESS LOGIC SETTINGS
# =====================================================================

TOP_N_DEFAULT_LIMIT = 20

RISK_LOW_MARGIN_THRESHOLD = 15.0
RISK_DECLINING_TREND_THRESHOLD = -5.0
RISK_LOW_VOLUME_THRESHOLD = 10000.0

RISK_REASONS = {
    'margin': 'Low margin',
    'trend': 'Declining trend',
    'volume': 'Low volume',
}

# Month-over-month change (%) beyond which a trend point is up/down
TREND_CHANGE_THRESHOLD = 5.0

# Customer growth (%) beyond which a customer is growing/declining
CUSTOMER_STATUS_THRESHOLD = 5.0

# Heuristic margin-variance split. Not a price/volume index:
# each weight scales the % change of its driver.
VARIANCE_WEIGHTS = {
    'volume': 0.4,
    'price': 0.3,
    'cost': 0.2,
    'mix': 0.1,
}

VARIANCE_CLAMP = 50.0

# Labels written into VarianceResult.comparison for fallback tiers
COMPARISON_MONTH_OVER_MONTH = 'month-over-month'
COMPARISON_HALF_SPLIT = 'half-split'
COMPARISON_SYNTHETIC = 'synthetic-estimate'
COMPARISON_INSUFFICIENT = 'insufficient-data'

# =====================================================================
# COLOR SCHEME / REGIONS
# =====================================================================

BUSINESS_AREA_COLORS = {
    'Food': 'bg-blue-500',
    'Household': 'bg-green-500',
    'Brillo': 'bg-yellow-500',
    'Kinetica': 'bg-purple-500',
}

DEFAULT_BUSINESS_AREA_COLOR = 'bg-gray-500'

# =====================================================================
# YOY REPORT LAYOUT
# =====================================================================

# Combined rows per report dimension: label -> member row names
COMBINED_ROWS = {
    'channel': {
        'Grocery + Wholesale ROI': ['Grocery ROI', 'Wholesale ROI'],
        'Grocery + Wholesale NI/UK': ['Grocery NI/UK', 'Wholesale NI/UK'],
    },
}

GRAND_TOTAL_LABEL = 'Grand Total'

# =====================================================================
# CACHE SETTINGS
# =====================================================================

CACHE_TTL_SECONDS = 1800  # 30 minutes
RAW_CACHE_TTL_SECONDS = 3600
RAW_DATA_CACHE_KEY = 'csv_data'
LAST_MODIFIED_CACHE_KEY = 'csv_last_modified'

# =====================================================================
# ACCESS CONTROL
# =====================================================================

FULL_ACCESS_ROLES = ['admin']

# Role -> channels it may see
ROLE_CHANNEL_SCOPES = {
    'channel:roi': ['Grocery ROI', 'Wholesale ROI'],
    'channel:uk': ['Grocery NI/UK', 'Wholesale NI/UK'],
    'channel:ni/uk': ['Grocery NI/UK', 'Wholesale NI/UK'],
    'channel:international': ['International'],
    'channel:online': ['Online'],
    'channel:others': ['Sports & Others'],
}

# Role -> business areas it may see
ROLE_BUSINESS_SCOPES = {
    'business:food': ['Food'],
    'business:household': ['Household'],
    'business:brillo': ['Brillo'],
    'business:kinetica': ['Kinetica'],
}

ROLE_BRAND_PREFIX = 'brand:'
ROLE_CUSTOMER_PREFIX = 'customer:'
