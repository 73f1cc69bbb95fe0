"""ETL pipeline for ticket-sales report documents.

Data Layers
===========

**Raw (Bronze)** - ``boxoffice_core.etl.raw/``
    Documents as delivered, turned into positional tokens.
    Data directory: ``data/a_raw/``

**Staging (Silver)** - ``boxoffice_core.etl.staging/``
    Layout detection, record extraction and normalization into the core fact:
    - ``PerformanceSnapshot``: one row per performance x snapshot date x source

**Load** - ``boxoffice_core.etl.c_load/``
    Batch-level spike correction and the idempotent warehouse ingest.

**Marts (Gold)** - ``boxoffice_core.etl.marts/``
    Aggregations on top of the snapshots (weekly season totals).

Entry points:
    ``boxoffice_core.etl.pipeline.run_batch`` (library) and the
    ``boxoffice-import-excel`` / ``boxoffice-import-pdf`` commands.
"""
