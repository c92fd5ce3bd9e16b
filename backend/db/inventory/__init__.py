"""
Merchandise inventory.

Models:
- Item (owned by one Brand, optionally linked into others via BrandItemLink)
- ItemSize (per-size counters: original / available / in circulation)
- Transaction (append-only log of take_out / return / burn / restock)
"""
