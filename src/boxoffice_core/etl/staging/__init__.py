"""Staging (Silver) layer - From tokens to PerformanceSnapshots.

- ``layout``: where each field lives in a spreadsheet (once per document)
- ``xlsx_extractor`` / ``pdf_extractor``: raw SalesRecords per format
- ``series``: section and title based series classification
- ``normalize``: dates, fiscal calendar, identity, total invariant

Core Fact
---------
``PerformanceSnapshot``:
   - Grain: performance x snapshot date x source
   - Key: ``snapshot_id = <performance_code>_<snapshot_date>_<source>``
   - total_tickets = single_tickets + subscription_tickets whenever both known
"""
