"""Snapshot table client over the BigQuery REST API.

Talks to three endpoints with a plain ``requests`` session:

- ``tables/{table}/insertAll`` for streaming inserts (one ``insertId`` per
  snapshot_id, ``skipInvalidRows`` so one bad row does not sink its chunk)
- ``queries`` for the existing-id lookup and the partition DELETE
- ``queries/{jobId}`` to page through query results

Timeouts, connection errors, 429 and 5xx are retried with exponential
backoff by the session adapter; other 4xx responses fail immediately.

Environment:
    BQ_PROJECT, BQ_ACCESS_TOKEN (required), BQ_DATASET, BQ_TABLE,
    BQ_TIMEOUT, BQ_RETRIES (see WarehouseSettings.from_env).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from boxoffice_core import __version__
from boxoffice_core.config import WarehouseSettings
from boxoffice_core.exceptions import TransientWarehouseError, WarehouseWriteFailure
from boxoffice_core.warehouse.base import InsertResult, RowFailure, WarehouseClient

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
DEFAULT_RETRIES = 3
RETRY_STATUSES = (429, 500, 502, 503, 504)
QUERY_POLL_INTERVAL = 1.0
QUERY_MAX_POLLS = 60


def make_session(
    timeout: float = DEFAULT_TIMEOUT, retries: int = DEFAULT_RETRIES
) -> requests.Session:
    """Create a requests Session with retry logic and default timeout.

    Configures the session with:
    - User-Agent header
    - Retry adapter for HTTP/HTTPS with exponential backoff
    - Default timeout for all requests
    - Retries on 429, 500, 502, 503, 504 status codes

    Args:
        timeout: Default timeout in seconds for all requests.
        retries: Number of retry attempts.

    Returns:
        Configured requests.Session object.

    """
    s = requests.Session()
    s.headers.update({"User-Agent": f"boxoffice-core-etl/{__version__}"})
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=0.8,  # 0.8, 1.6, 3.2, ...
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"GET", "POST"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    # Default timeouts via a wrapper
    orig_request = s.request

    def timed_request(method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", timeout)
        return orig_request(method, url, **kwargs)

    s.request = timed_request  # type: ignore[method-assign]
    return s


def _string_array_param(name: str, values: Sequence[str]) -> dict[str, Any]:
    return {
        "name": name,
        "parameterType": {"type": "ARRAY", "arrayType": {"type": "STRING"}},
        "parameterValue": {"arrayValues": [{"value": v} for v in values]},
    }


def _string_param(name: str, value: str) -> dict[str, Any]:
    return {
        "name": name,
        "parameterType": {"type": "STRING"},
        "parameterValue": {"value": value},
    }


class BigQueryRestWarehouse(WarehouseClient):
    """WarehouseClient for a BigQuery table, authenticated with a bearer token.

    Args:
        settings: Project, dataset, table, token, timeout and retry budget.
        session: Optional preconfigured session (tests inject a fake one).

    """

    def __init__(
        self, settings: WarehouseSettings, session: requests.Session | None = None
    ) -> None:
        self.settings = settings
        self.session = session or make_session(settings.timeout, settings.retries)
        self.session.headers.update(
            {
                "Authorization": f"Bearer {settings.access_token}",
                "Content-Type": "application/json",
            }
        )

    @classmethod
    def from_env(cls) -> BigQueryRestWarehouse:
        return cls(WarehouseSettings.from_env())

    # ----------------------------------------------------------------- helpers

    @property
    def table_ref(self) -> str:
        s = self.settings
        return f"`{s.project}.{s.dataset}.{s.table}`"

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/projects/{self.settings.project}/{path}"

    def _call(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = self._url(path)
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise TransientWarehouseError(
                f"{method} {path} failed after {self.settings.retries} retries: {e}"
            ) from e

        if resp.status_code in (401, 403):
            raise WarehouseWriteFailure(
                f"{method} {path}: authentication rejected (HTTP {resp.status_code})"
            )
        if resp.status_code in RETRY_STATUSES:
            raise TransientWarehouseError(
                f"{method} {path}: HTTP {resp.status_code} after "
                f"{self.settings.retries} retries - {resp.text[:400]}"
            )
        if not (200 <= resp.status_code < 300):
            raise WarehouseWriteFailure(
                f"{method} {path}: HTTP {resp.status_code} - {resp.text[:400]}"
            )
        try:
            return resp.json()
        except ValueError as e:
            raise WarehouseWriteFailure(f"{method} {path}: response is not JSON") from e

    def _query(self, sql: str, params: list[dict[str, Any]]) -> dict[str, Any]:
        """Run a standard-SQL query and return the final response page(s) merged."""
        body = {
            "query": sql,
            "useLegacySql": False,
            "parameterMode": "NAMED",
            "queryParameters": params,
            "timeoutMs": int(self.settings.timeout * 1000),
        }
        logger.debug("Query: %s", " ".join(sql.split()))
        resp = self._call("POST", "queries", json=body)

        job_id = resp.get("jobReference", {}).get("jobId")
        location = resp.get("jobReference", {}).get("location")
        polls = 0
        while not resp.get("jobComplete", False):
            if job_id is None or polls >= QUERY_MAX_POLLS:
                raise TransientWarehouseError("Query did not complete in time")
            polls += 1
            time.sleep(QUERY_POLL_INTERVAL)
            resp = self._call("GET", f"queries/{job_id}", params={"location": location})

        rows = list(resp.get("rows", []))
        token = resp.get("pageToken")
        while token:
            page = self._call(
                "GET", f"queries/{job_id}", params={"location": location, "pageToken": token}
            )
            rows.extend(page.get("rows", []))
            token = page.get("pageToken")
        resp["rows"] = rows
        return resp

    # ------------------------------------------------------------------- API

    def existing_ids(self, snapshot_ids: Sequence[str]) -> set[str]:
        if not snapshot_ids:
            return set()
        sql = f"SELECT snapshot_id FROM {self.table_ref} WHERE snapshot_id IN UNNEST(@ids)"
        resp = self._query(sql, [_string_array_param("ids", list(snapshot_ids))])
        return {row["f"][0]["v"] for row in resp["rows"]}

    def delete_partitions(self, partitions: Iterable[tuple[str, str]]) -> int:
        pairs = sorted(set(partitions))
        if not pairs:
            return 0
        clauses = []
        params = []
        for i, (fiscal_year, source) in enumerate(pairs):
            clauses.append(f"(fiscal_year = @fy{i} AND source = @src{i})")
            params.append(_string_param(f"fy{i}", fiscal_year))
            params.append(_string_param(f"src{i}", source))
        sql = f"DELETE FROM {self.table_ref} WHERE " + " OR ".join(clauses)
        resp = self._query(sql, params)
        deleted = int(resp.get("numDmlAffectedRows", -1))
        logger.info("Deleted %d rows for %s", deleted, pairs)
        return deleted

    def insert_rows(self, rows: Sequence[Mapping[str, Any]]) -> InsertResult:
        if not rows:
            return InsertResult()
        s = self.settings
        body = {
            "kind": "bigquery#tableDataInsertAllRequest",
            "skipInvalidRows": True,
            "ignoreUnknownValues": False,
            "rows": [{"insertId": r["snapshot_id"], "json": dict(r)} for r in rows],
        }
        resp = self._call("POST", f"datasets/{s.dataset}/tables/{s.table}/insertAll", json=body)

        failed: list[RowFailure] = []
        for err in resp.get("insertErrors", []):
            idx = int(err.get("index", -1))
            sid = str(rows[idx]["snapshot_id"]) if 0 <= idx < len(rows) else f"<row {idx}>"
            reasons = "; ".join(
                f"{e.get('reason', 'invalid')}: {e.get('message', '')}".strip()
                for e in err.get("errors", [])
            )
            failed.append(RowFailure(sid, reasons or "rejected"))
        return InsertResult(inserted=len(rows) - len(failed), failed=failed)
