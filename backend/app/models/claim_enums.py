"""
Allowance (TADA) claim enumerations.
"""

import enum


class TadaStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ClaimType(str, enum.Enum):
    FUEL = "Fuel"
    LUNCH = "Lunch"
    TOLL = "Toll"
    PARKING = "Parking"
    OTHER = "Other"
