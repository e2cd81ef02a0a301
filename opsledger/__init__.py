"""
OpsLedger - Derived-status and aggregation engine for a business admin dashboard.

Computes job schedule status, project payment status, budget indicators,
category and monthly expense aggregates, invoice totals and advertiser
campaign statistics from raw record-store rows.

Version: 0.1.0
"""

__version__ = "0.1.0"
__author__ = "OpsLedger Team"
