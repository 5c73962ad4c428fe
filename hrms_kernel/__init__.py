"""
HRMS Kernel - employment funding core

Shared infrastructure for the funding-allocation and probation engine:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Injectable clock
- SQLAlchemy persistence for employments, allocations and audit history
"""

__version__ = "0.1.0"
