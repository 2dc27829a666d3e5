"""
homeledger - Source Package

The engine behind a personal finance tracker: recurring schedules,
period aggregation, archiving and budget reports.

DESIGN PRINCIPLES:
1. The core is pure: no storage, no clock, no network
2. Collaborators (storage, clock, AI) are injected
3. No silent defaults for invalid input
4. "Nothing matched" is a result, not an error
5. Every mutating flow is auditable
"""

__version__ = "1.0.0"
__author__ = "homeledger Team"
