"""
Value types for platforms and accounts.

LEGAL NOTICE:
Passwords are held in plain form inside these records. Keep the database on
a device you own or administer.
"""

import enum
from dataclasses import dataclass, asdict, replace
from typing import Dict, Any, Optional


class PlatformType(enum.Enum):
    """Closed set of platform categories."""
    SOCIAL = "social"
    LEARNING = "learning"
    WORK = "work"
    ENTERTAINMENT = "entertainment"
    FINANCE = "finance"
    PAYMENT = "payment"
    TRANSPORT = "transport"
    SHOPPING = "shopping"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return PLATFORM_TYPE_NAMES[self]

    @classmethod
    def from_string(cls, value: Optional[str]) -> Optional['PlatformType']:
        """
        Look up a type by its persisted display name.
        Unknown or empty values map to None instead of raising.
        """
        if value is None:
            return None
        return _PLATFORM_TYPES_BY_NAME.get(value.strip())

    def to_string(self) -> str:
        return PLATFORM_TYPE_NAMES[self]


# Persisted form of each type. Keep both directions in sync.
PLATFORM_TYPE_NAMES: Dict[PlatformType, str] = {
    PlatformType.SOCIAL: "Social",
    PlatformType.LEARNING: "Learning",
    PlatformType.WORK: "Work",
    PlatformType.ENTERTAINMENT: "Entertainment",
    PlatformType.FINANCE: "Finance",
    PlatformType.PAYMENT: "Payment",
    PlatformType.TRANSPORT: "Transport",
    PlatformType.SHOPPING: "Shopping",
    PlatformType.OTHER: "Other",
}
_PLATFORM_TYPES_BY_NAME: Dict[str, PlatformType] = {name: t for t, name in PLATFORM_TYPE_NAMES.items()}


@dataclass
class Platform:
    """A named service under which accounts are grouped."""
    name: str
    type: Optional[PlatformType] = None
    sort_index: int = 0
    id: int = 0

    @property
    def is_new(self) -> bool:
        return not self.id

    def with_type(self, new_type: Optional[PlatformType]) -> 'Platform':
        """Copy of this platform with only the type changed."""
        return replace(self, type=new_type)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.to_string() if self.type else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Platform':
        data = dict(data)
        data['type'] = PlatformType.from_string(data.get('type'))
        return cls(**data)


@dataclass
class Account:
    """A single credential record belonging to exactly one platform."""
    platform_id: int
    password: str
    login_name: Optional[str] = None
    remark: Optional[str] = None
    pay_password: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    id_number: Optional[str] = None
    id: int = 0

    @property
    def is_new(self) -> bool:
        return not self.id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        """Create from dictionary."""
        return cls(**data)
