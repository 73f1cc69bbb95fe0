"""Load layer - Batch corrections and warehouse writes.

- ``spike_correction``: repair isolated single-snapshot revenue spikes
- ``ingest``: idempotent APPEND / CLEAR writes in chunks
"""
