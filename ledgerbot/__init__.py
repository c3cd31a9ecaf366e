"""
WhatsApp Ledger Bot - Source Package

A chat bot that records household income and expenses into a
spreadsheet ledger from plain WhatsApp messages.

DESIGN PRINCIPLES:
1. AI proposes → Human confirms → Ledger records
2. Nothing is written to the ledger without an explicit "confirm"
3. One pending proposal per sender, never merged
4. Collaborators are built once at startup and injected
5. Storage and transport are swappable (live or mock)
"""

__version__ = "1.0.0"
__author__ = "Ledger Bot Team"
