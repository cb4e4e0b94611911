"""ClaimCalc: reserving and damage assessment for property insurance claims."""

__version__ = "0.1.0"
