"""
Ledger Assistant - Source Package

A chat-driven bookkeeping assistant for small sellers. Messages describing
sales are matched against the seller's catalog, confirmed in a short
conversational exchange and written to the ledger.

DESIGN PRINCIPLES:
1. AI pre-parses → Matcher resolves → User confirms → Ledger records
2. Not finding a product is normal, never an error
3. At most one pending action per user, and it always expires
4. The ledger write is authoritative; detail rows are best-effort
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledger Assistant Team"
