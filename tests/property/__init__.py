"""
Property-based tests for CeyLog request screening.

This package contains Hypothesis-based property tests for the sensitive
data scan and origin matching.
"""
