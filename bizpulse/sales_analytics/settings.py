# bizpulse/sales_analytics/settings.py
"""
Analytics tunables consumed by the report builders and the service façade.

Defaults come from constants.py; bizpulse.config.Config overrides them
from the environment.
"""

from dataclasses import dataclass, field
from typing import Dict, Any

from .constants import (
    TOP_N_DEFAULT_LIMIT,
    RISK_LOW_MARGIN_THRESHOLD,
    RISK_DECLINING_TREND_THRESHOLD,
    RISK_LOW_VOLUME_THRESHOLD,
    CACHE_TTL_SECONDS,
    RAW_CACHE_TTL_SECONDS,
    VARIANCE_WEIGHTS,
)


@dataclass
class AnalyticsSettings:
    """Analytics configuration container"""
    top_n_default_limit: int = TOP_N_DEFAULT_LIMIT
    risk_low_margin_threshold: float = RISK_LOW_MARGIN_THRESHOLD
    risk_declining_trend_threshold: float = RISK_DECLINING_TREND_THRESHOLD
    risk_low_volume_threshold: float = RISK_LOW_VOLUME_THRESHOLD
    cache_ttl_seconds: int = CACHE_TTL_SECONDS
    raw_cache_ttl_seconds: int = RAW_CACHE_TTL_SECONDS
    allow_empty: bool = True
    variance_weights: Dict[str, float] = field(default_factory=lambda: dict(VARIANCE_WEIGHTS))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'topNDefaultLimit': self.top_n_default_limit,
            'riskLowMarginThreshold': self.risk_low_margin_threshold,
            'riskDecliningTrendThreshold': self.risk_declining_trend_threshold,
            'riskLowVolumeThreshold': self.risk_low_volume_threshold,
            'cacheTtlSeconds': self.cache_ttl_seconds,
            'rawCacheTtlSeconds': self.raw_cache_ttl_seconds,
            'allowEmpty': self.allow_empty,
            'varianceWeights': dict(self.variance_weights),
        }
