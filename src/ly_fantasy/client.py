"""HTTP client for the Legislative Yuan data sources.

Three upstreams are involved:

- ``ly.govapi.tw/v2``: per-legislator bills and interpellations (paged JSON).
- ``data.ly.gov.tw`` open data: the legislator roster and roll-call index.
- ``www.ly.gov.tw/WebAPI/LegislativeSpeech.aspx``: floor speeches by date.

All requests go through one throttled :class:`requests.Session` with a retry
adapter, so a full sync stays polite to the public endpoints.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from . import config as cfg
from .normalize import date_to_roc

LOGGER = logging.getLogger(__name__)

# ── output_fields requested from ly.govapi.tw ────────────────────────────────

BILL_FIELDS: tuple[str, ...] = (
    "屆",
    "議案編號",
    "議案名稱",
    "提案單位",
    "提案日期",
    "字號",
    "法律編號",
    "議案狀態",
    "最新進度日期",
    "提案人",
    "連署人",
)

INTERPELLATION_FIELDS: tuple[str, ...] = ("質詢編號", "刊登日期", "會期", "事由")


class LYApiError(RuntimeError):
    """Raised for non-2xx responses, transport failures and undecodable bodies."""


@dataclass
class LYApiClient:
    govapi_base: str = cfg.GOVAPI_BASE
    open_data_base: str = cfg.OPEN_DATA_BASE
    speech_api: str = cfg.SPEECH_API
    term: int = cfg.TERM
    timeout_seconds: int = cfg.TIMEOUT_SECONDS
    request_delay: float = cfg.REQUEST_DELAY
    _session: requests.Session = field(default_factory=requests.Session, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _last_request_time: float = field(default=0.0, repr=False)

    def __post_init__(self) -> None:
        """Configure retry adapter for resilient HTTP requests."""
        retry_strategy = Retry(
            total=3,
            backoff_factor=1.0,
            status_forcelist=[429, 500, 502, 503, 504],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy, pool_connections=5, pool_maxsize=5)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)
        self._session.headers.setdefault("User-Agent", "Mozilla/5.0 (ly-fantasy)")

    def close(self) -> None:
        self._session.close()

    # ── throttled HTTP ────────────────────────────────────────────────────

    def _throttled_get(self, url: str, **kwargs: Any) -> requests.Response:
        """GET with a per-instance rate limit."""
        with self._lock:
            elapsed = time.time() - self._last_request_time
            wait = max(0.0, self.request_delay - elapsed)
            self._last_request_time = time.time() + wait
        if wait > 0:
            time.sleep(wait)
        kwargs.setdefault("timeout", self.timeout_seconds)
        try:
            resp = self._session.get(url, **kwargs)
        except requests.RequestException as exc:
            raise LYApiError(f"request to {url} failed: {exc}") from exc
        if not resp.ok:
            raise LYApiError(f"{url} returned status {resp.status_code}")
        return resp

    def get_json(self, url: str, **kwargs: Any) -> Any:
        resp = self._throttled_get(url, **kwargs)
        try:
            return resp.json()
        except ValueError as exc:
            raise LYApiError(f"{url} returned a non-JSON body") from exc

    def get_bytes(self, url: str) -> bytes:
        return self._throttled_get(url).content

    # ── ly.govapi.tw ──────────────────────────────────────────────────────

    def _legislator_url(self, name: str, resource: str) -> str:
        return f"{self.govapi_base}/legislators/{self.term}/{quote(name, safe='')}/{resource}"

    def _fetch_paged(
        self, url: str, list_key: str, fields: tuple[str, ...]
    ) -> list[dict[str, Any]]:
        """Collect every page of a govapi listing.

        The first page reports ``total_page``; a payload with ``error`` or
        without *list_key* means the legislator has no records.
        """
        params: list[tuple[str, str | int]] = [("output_fields", f) for f in fields]
        data = self.get_json(url, params=params)
        if not isinstance(data, dict) or data.get("error") or not data.get(list_key):
            return []
        items: list[dict[str, Any]] = list(data[list_key])
        total_pages = int(data.get("total_page") or 1)
        for page in range(2, total_pages + 1):
            page_data = self.get_json(url, params=[*params, ("page", page)])
            if isinstance(page_data, dict):
                items.extend(page_data.get(list_key) or [])
        LOGGER.debug("Fetched %d %s from %s", len(items), list_key, url)
        return items

    def fetch_propose_bills(self, name: str) -> list[dict[str, Any]]:
        return self._fetch_paged(self._legislator_url(name, "propose_bills"), "bills", BILL_FIELDS)

    def fetch_cosign_bills(self, name: str) -> list[dict[str, Any]]:
        return self._fetch_paged(self._legislator_url(name, "cosign_bills"), "bills", BILL_FIELDS)

    def fetch_interpellations(self, name: str) -> list[dict[str, Any]]:
        return self._fetch_paged(
            self._legislator_url(name, "interpellations"),
            "interpellations",
            INTERPELLATION_FIELDS,
        )

    # ── data.ly.gov.tw open data ──────────────────────────────────────────

    def _fetch_dataset(self, dataset_id: int, select_term: str) -> list[dict[str, Any]]:
        data = self.get_json(
            self.open_data_base,
            params={"id": dataset_id, "selectTerm": select_term, "page": 1},
        )
        if not isinstance(data, dict):
            raise LYApiError(f"dataset {dataset_id} returned an unexpected payload")
        return list(data.get("jsonList") or [])

    def fetch_roster(self) -> list[dict[str, Any]]:
        return self._fetch_dataset(cfg.ROSTER_DATASET_ID, "all")

    def fetch_rollcall_index(self) -> list[dict[str, Any]]:
        return self._fetch_dataset(cfg.ROLLCALL_DATASET_ID, str(self.term))

    # ── Speech WebAPI ─────────────────────────────────────────────────────

    def fetch_floor_speeches(self, start: date, end: date) -> list[dict[str, Any]]:
        data = self.get_json(
            self.speech_api,
            params={"from": date_to_roc(start), "to": date_to_roc(end), "mode": "JSON"},
        )
        if not isinstance(data, list):
            return []
        return data

