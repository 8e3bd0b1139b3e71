# bizpulse/sales_analytics/access_control.py
"""
Row-level Access Control for Sales Analytics

A caller is described by an AuthContext: roles plus four allow-lists
(business areas, channels, brands, customers). The service merges the
allow-lists into every FilterSpec before filtering.

Scope derivation (only when no explicit allow-list was supplied):
- admin:                     unrestricted
- channel:roi / uk / ni/uk / international / online / others
- business:food / household / brillo / kinetica
- brand:<name>, customer:<name>

No allow-list at all means unrestricted (administrator-equivalent).
Token verification happens upstream; this module only reads its result.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from .constants import (
    FULL_ACCESS_ROLES,
    ROLE_CHANNEL_SCOPES,
    ROLE_BUSINESS_SCOPES,
    ROLE_BRAND_PREFIX,
    ROLE_CUSTOMER_PREFIX,
)
from .filters import FilterSpec

logger = logging.getLogger(__name__)

# Header -> AuthContext field (dev fallback when no token is present)
SCOPE_HEADERS = {
    'x-allowed-business-areas': 'allowed_business_areas',
    'x-allowed-channels': 'allowed_channels',
    'x-allowed-brands': 'allowed_brands',
    'x-allowed-customers': 'allowed_customers',
}


def parse_csv_header(value) -> Optional[List[str]]:
    """'a, b,,c' -> ['a', 'b', 'c']; None when nothing is left."""
    if not value:
        return None
    raw = ','.join(value) if isinstance(value, (list, tuple)) else str(value)
    items = [part.strip() for part in raw.split(',') if part.strip()]
    return items or None


def _unique(items: Iterable[str]) -> Optional[List[str]]:
    result = list(dict.fromkeys(items))
    return result or None


@dataclass(frozen=True)
class AuthContext:
    """Caller identity as far as data visibility is concerned."""
    roles: List[str] = field(default_factory=list)
    allowed_business_areas: Optional[List[str]] = None
    allowed_channels: Optional[List[str]] = None
    allowed_brands: Optional[List[str]] = None
    allowed_customers: Optional[List[str]] = None
    user_id: Optional[str] = None

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @classmethod
    def admin(cls) -> 'AuthContext':
        return cls(roles=['admin'])

    @classmethod
    def from_roles(cls, roles: Iterable[str], user_id: Optional[str] = None) -> 'AuthContext':
        """
        Derive allow-lists from role names.

        Args:
            roles: Role names (case-insensitive)
            user_id: Optional caller id, kept for logging

        Returns:
            AuthContext; any admin role makes it unrestricted
        """
        roles = [str(r).strip() for r in roles if r and str(r).strip()]
        business_areas: List[str] = []
        channels: List[str] = []
        brands: List[str] = []
        customers: List[str] = []

        for role in roles:
            key = role.lower()
            if key in FULL_ACCESS_ROLES:
                return cls(roles=roles, user_id=user_id)

            channels.extend(ROLE_CHANNEL_SCOPES.get(key, []))
            business_areas.extend(ROLE_BUSINESS_SCOPES.get(key, []))

            if key.startswith(ROLE_BRAND_PREFIX):
                name = role[len(ROLE_BRAND_PREFIX):].strip()
                if name:
                    brands.append(name)
            if key.startswith(ROLE_CUSTOMER_PREFIX):
                name = role[len(ROLE_CUSTOMER_PREFIX):].strip()
                if name:
                    customers.append(name)

        return cls(
            roles=roles,
            allowed_business_areas=_unique(business_areas),
            allowed_channels=_unique(channels),
            allowed_brands=_unique(brands),
            allowed_customers=_unique(customers),
            user_id=user_id,
        )

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> 'AuthContext':
        """
        Dev fallback: read roles and scopes from request headers.

        x-user-roles (or x-user-role) defaults to 'admin'. Explicit
        x-allowed-* headers win; otherwise scopes are derived from roles.
        """
        lowered: Dict[str, str] = {str(k).lower(): v for k, v in headers.items()}
        roles = (parse_csv_header(lowered.get('x-user-roles'))
                 or parse_csv_header(lowered.get('x-user-role'))
                 or ['admin'])

        explicit = {name: parse_csv_header(lowered.get(header)) for header, name in SCOPE_HEADERS.items()}
        if any(explicit.values()):
            context = cls(roles=roles, **explicit)
        else:
            context = cls.from_roles(roles)

        logger.debug(f"AuthContext from headers: roles={roles}, level={context.get_access_level()}")
        return context

    # =========================================================================
    # ACCESS LEVEL
    # =========================================================================

    def is_unrestricted(self) -> bool:
        return not any((
            self.allowed_business_areas,
            self.allowed_channels,
            self.allowed_brands,
            self.allowed_customers,
        ))

    def get_access_level(self) -> str:
        """
        Returns:
            'full'       - no allow-list applies
            'restricted' - at least one allow-list applies
        """
        return 'full' if self.is_unrestricted() else 'restricted'

    # =========================================================================
    # FILTER MERGE
    # =========================================================================

    def apply_to(self, spec: Optional[FilterSpec]) -> FilterSpec:
        """FilterSpec with this caller's allow-lists merged in."""
        spec = spec or FilterSpec()
        if self.is_unrestricted():
            return spec
        return spec.with_scope(
            business_areas=self.allowed_business_areas,
            channels=self.allowed_channels,
            brands=self.allowed_brands,
            customers=self.allowed_customers,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            'userId': self.user_id,
            'roles': list(self.roles),
            'allowedBusinessAreas': self.allowed_business_areas,
            'allowedChannels': self.allowed_channels,
            'allowedBrands': self.allowed_brands,
            'allowedCustomers': self.allowed_customers,
            'accessLevel': self.get_access_level(),
        }
