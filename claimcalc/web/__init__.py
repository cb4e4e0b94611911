"""JSON API for ClaimCalc."""
