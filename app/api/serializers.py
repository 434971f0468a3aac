"""JSON shapes shared by the routers.

Keys are camelCase to match what the web client consumes.  Password
hashes never leave this module.
"""

from __future__ import annotations

from datetime import datetime

from app.models.organization import Organization
from app.models.school import School
from app.models.user import User


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def organization_out(org: Organization) -> dict:
    return {
        "id": str(org.id),
        "name": org.name,
        "slug": org.slug,
        "email": org.email,
        "phone": org.phone,
        "website": org.website,
        "businessType": org.business_type,
        "martialArtTypes": list(org.martial_art_types),
        "subscription": org.subscription,
        "subscriptionStatus": org.subscription_status,
        "trialStartDate": iso(org.trial_start_date),
        "trialEndDate": iso(org.trial_end_date),
        "subscriptionExpiry": iso(org.subscription_expiry),
        "settings": org.settings.to_dict(),
        "isActive": org.is_active,
    }


def school_out(school: School) -> dict:
    return {
        "id": str(school.id),
        "organizationId": str(school.organization_id),
        "name": school.name,
        "slug": school.slug,
        "address": school.address,
        "city": school.city,
        "state": school.state,
        "zipCode": school.zip_code,
        "country": school.country,
        "phone": school.phone,
        "email": school.email,
        "website": school.website,
        "description": school.description,
        "maxStudents": school.max_students,
        "timezone": school.timezone,
        "settings": school.settings.to_dict(),
        "isActive": school.is_active,
    }


def user_out(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "role": user.role,
        "organizationId": str(user.organization_id),
        "schoolId": str(user.school_id) if user.school_id else None,
        "phone": user.phone,
        "isActive": user.is_active,
        "emailVerified": user.email_verified,
        "lastLogin": iso(user.last_login),
    }
