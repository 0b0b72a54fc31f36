"""
Processing module for pipeline reconciliation.

Runs fixture rows through a document store and reconciles the documents read back.
"""

from .round_trip import RoundTripHarness, RoundTripResult

__all__ = [
    'RoundTripHarness',
    'RoundTripResult'
]
