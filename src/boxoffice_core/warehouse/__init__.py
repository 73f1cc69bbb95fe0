"""Write boundary of the performance snapshot table.

- ``WarehouseClient``: interface the ingestor writes through
- ``BigQueryRestWarehouse``: production client (REST, bearer token)
- ``InMemoryWarehouse``: dict-backed table for dry runs and tests
"""

from boxoffice_core.warehouse.base import (
    SNAPSHOT_SCHEMA,
    InsertResult,
    RowFailure,
    WarehouseClient,
)
from boxoffice_core.warehouse.bigquery_rest import BigQueryRestWarehouse, make_session
from boxoffice_core.warehouse.memory import InMemoryWarehouse, validate_row

__all__ = [
    "SNAPSHOT_SCHEMA",
    "BigQueryRestWarehouse",
    "InMemoryWarehouse",
    "InsertResult",
    "RowFailure",
    "WarehouseClient",
    "make_session",
    "validate_row",
]
