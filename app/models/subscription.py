"""Subscription tiers and the per-tier quota/feature policy.

An organization's ``settings`` document is modelled as a typed record
(``OrgSettings``) instead of a free-form dict, so every tier is forced to
spell out every feature flag and converting between tiers replaces the
document wholesale.

The JSON shape stored in the database and returned by the API keeps the
camelCase keys the frontend already consumes::

    {
      "allowedSchools": 3,
      "allowedStudents": 200,
      "features": {"attendance": true, "reporting": true, ...},
      "trialFeatures": false
    }
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

SubscriptionTier = Literal["trial", "free", "basic", "premium", "enterprise"]
PaidTier = Literal["free", "basic", "premium", "enterprise"]
SubscriptionStatus = Literal["active", "suspended", "cancelled"]

PAID_TIERS: tuple[PaidTier, ...] = ("free", "basic", "premium", "enterprise")

# Quota sentinel for enterprise plans.
UNLIMITED = -1


@dataclass(frozen=True, slots=True)
class FeatureFlags:
    attendance: bool
    reporting: bool
    messaging: bool
    payments: bool
    advanced_analytics: bool
    custom_branding: bool

    def to_dict(self) -> dict[str, bool]:
        return {
            "attendance": self.attendance,
            "reporting": self.reporting,
            "messaging": self.messaging,
            "payments": self.payments,
            "advancedAnalytics": self.advanced_analytics,
            "customBranding": self.custom_branding,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> FeatureFlags:
        # Missing keys mean "not granted"; the map is always complete afterwards.
        return FeatureFlags(
            attendance=bool(data.get("attendance", False)),
            reporting=bool(data.get("reporting", False)),
            messaging=bool(data.get("messaging", False)),
            payments=bool(data.get("payments", False)),
            advanced_analytics=bool(data.get("advancedAnalytics", False)),
            custom_branding=bool(data.get("customBranding", False)),
        )


@dataclass(frozen=True, slots=True)
class OrgSettings:
    allowed_schools: int
    allowed_students: int
    features: FeatureFlags
    trial_features: bool = False

    @property
    def unlimited_schools(self) -> bool:
        return self.allowed_schools == UNLIMITED

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowedSchools": self.allowed_schools,
            "allowedStudents": self.allowed_students,
            "features": self.features.to_dict(),
            "trialFeatures": self.trial_features,
        }

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> OrgSettings:
        data = data or {}
        return OrgSettings(
            allowed_schools=int(data.get("allowedSchools", 1)),
            allowed_students=int(data.get("allowedStudents", 0)),
            features=FeatureFlags.from_dict(data.get("features") or {}),
            trial_features=bool(data.get("trialFeatures", False)),
        )


@dataclass(frozen=True, slots=True)
class TierPolicy:
    allowed_schools: int
    allowed_students: int
    features: FeatureFlags

    def to_settings(self) -> OrgSettings:
        return OrgSettings(
            allowed_schools=self.allowed_schools,
            allowed_students=self.allowed_students,
            features=self.features,
            trial_features=False,
        )


# Trial grants everything except payments.
TRIAL_FEATURES = FeatureFlags(
    attendance=True,
    reporting=True,
    messaging=True,
    payments=False,
    advanced_analytics=True,
    custom_branding=True,
)
TRIAL_DEFAULT_SCHOOLS = 1
TRIAL_DEFAULT_STUDENTS = 100

TIER_POLICIES: dict[PaidTier, TierPolicy] = {
    "free": TierPolicy(
        allowed_schools=1,
        allowed_students=50,
        features=FeatureFlags(
            attendance=True,
            reporting=False,
            messaging=False,
            payments=False,
            advanced_analytics=False,
            custom_branding=False,
        ),
    ),
    "basic": TierPolicy(
        allowed_schools=3,
        allowed_students=200,
        features=FeatureFlags(
            attendance=True,
            reporting=True,
            messaging=True,
            payments=False,
            advanced_analytics=False,
            custom_branding=False,
        ),
    ),
    "premium": TierPolicy(
        allowed_schools=10,
        allowed_students=1000,
        features=FeatureFlags(
            attendance=True,
            reporting=True,
            messaging=True,
            payments=True,
            advanced_analytics=True,
            custom_branding=False,
        ),
    ),
    "enterprise": TierPolicy(
        allowed_schools=UNLIMITED,
        allowed_students=UNLIMITED,
        features=FeatureFlags(
            attendance=True,
            reporting=True,
            messaging=True,
            payments=True,
            advanced_analytics=True,
            custom_branding=True,
        ),
    ),
}


def trial_settings(number_of_schools: int | None, estimated_students: int | None) -> OrgSettings:
    """Settings seeded at registration; zero or missing estimates use defaults."""
    return OrgSettings(
        allowed_schools=number_of_schools or TRIAL_DEFAULT_SCHOOLS,
        allowed_students=estimated_students or TRIAL_DEFAULT_STUDENTS,
        features=TRIAL_FEATURES,
        trial_features=True,
    )
