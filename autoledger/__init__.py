"""
AutoLedger - Source Package

A small personal ledger: record income and expenses by hand or let
Gemini read them from a pasted payment message or a receipt photo,
then review spending grouped by day, month or year.

DESIGN PRINCIPLES:
1. AI suggests → Human confirms → Store persists
2. The category taxonomy is closed; AI labels never leak past it
3. Money is summed as Decimal, never float
4. Every step is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "AutoLedger Team"
