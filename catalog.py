"""
Device catalog: loading, filtering and the list page controller.

The catalog is fetched once per page load from ``data/devices.json`` (either a
flat array of device summaries or an object with a ``devices`` array) and then
filtered in memory by brand and free-text query.

``DeviceBrowser`` is the in-process controller for one list page: it owns the
catalog and view state and debounces search input with ``Debouncer``. The web
page applies the same ``SEARCH_DEBOUNCE_SECONDS`` delay in its own script.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import urljoin

import pandas as pd
import requests
from pydantic import ValidationError

from models import ALL_BRANDS, DeviceSummary, ViewState

logger = logging.getLogger(__name__)

CATALOG_REF = "data/devices.json"
SEARCH_DEBOUNCE_SECONDS = 0.3


class DataSourceError(Exception):
    """A JSON resource could not be obtained."""


class FetchError(DataSourceError):
    """Transport failure, non-success status or unreadable file."""


class DecodeError(DataSourceError):
    """The resource was fetched but is not valid JSON."""


class LoadError(Exception):
    """The device catalog could not be fetched or decoded."""


def _is_url(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


class DataSource:
    """Reads JSON resources relative to a site root (base URL or directory)."""

    def __init__(self, root: str | Path, timeout: Optional[float] = None):
        self.root = str(root)
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"DataSource({self.root!r})"

    @property
    def is_remote(self) -> bool:
        return _is_url(self.root)

    def locate(self, ref: str) -> str:
        if _is_url(ref):
            return ref
        if self.is_remote:
            base = self.root if self.root.endswith("/") else self.root + "/"
            return urljoin(base, ref.lstrip("/"))
        return str(Path(self.root) / ref.lstrip("/"))

    def fetch_json(self, ref: str) -> Any:
        location = self.locate(ref)
        logger.info(f"Fetching {location}")
        if _is_url(location):
            return self._fetch_url(location)
        return self._read_file(location)

    def _fetch_url(self, url: str) -> Any:
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e
        try:
            return json.loads(response.text)
        except ValueError as e:
            raise DecodeError(f"Invalid JSON in {url}: {e}") from e

    def _read_file(self, path: str) -> Any:
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise FetchError(f"Failed to read {path}: {e}") from e
        try:
            return json.loads(text)
        except ValueError as e:
            raise DecodeError(f"Invalid JSON in {path}: {e}") from e


def decode_catalog(payload: Any) -> list[DeviceSummary]:
    """Normalize either catalog shape into a list of summaries, in source order."""
    if isinstance(payload, dict) and isinstance(payload.get("devices"), list):
        entries = payload["devices"]
    elif isinstance(payload, list):
        entries = payload
    else:
        raise LoadError(f"Unrecognized catalog shape: {type(payload).__name__}")

    devices = []
    seen = set()
    for position, entry in enumerate(entries):
        try:
            device = DeviceSummary.model_validate(entry)
        except ValidationError as e:
            raise LoadError(f"Invalid device entry at position {position}: {e}") from e
        if device.id in seen:
            raise LoadError(f"Duplicate device id: {device.id}")
        seen.add(device.id)
        devices.append(device)
    return devices


def load_catalog(source: DataSource, ref: str = CATALOG_REF) -> list[DeviceSummary]:
    """Fetch and decode the device catalog. Any failure is a ``LoadError``."""
    try:
        payload = source.fetch_json(ref)
    except DataSourceError as e:
        logger.error(f"Failed to load devices: {e}")
        raise LoadError(str(e)) from e

    devices = decode_catalog(payload)
    logger.info(f"Loaded {len(devices)} devices from {source}")
    return devices


def _catalog_frame(catalog: list[DeviceSummary]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "brand": [d.brand for d in catalog],
            "name": [d.name for d in catalog],
            "codename": [d.codename for d in catalog],
        }
    )


def visible_devices(
    catalog: list[DeviceSummary],
    active_filter: str = ALL_BRANDS,
    query: str = "",
) -> list[DeviceSummary]:
    """
    Subset of *catalog* matching the brand filter and the search query.

    • ``active_filter == "all"`` places no brand restriction, otherwise the
      brand must match case-insensitively.
    • An empty *query* places no text restriction, otherwise name or codename
      must contain it case-insensitively.
    • Catalog order is preserved; an empty result is a valid outcome.
    """
    if not catalog:
        return []

    df = _catalog_frame(catalog)
    mask = pd.Series(True, index=df.index)

    if active_filter.lower() != ALL_BRANDS:
        mask &= df["brand"].str.lower() == active_filter.lower()

    if query:
        needle = query.lower()
        mask &= df["name"].str.lower().str.contains(needle, regex=False) | df[
            "codename"
        ].str.lower().str.contains(needle, regex=False)

    return [catalog[i] for i in df.index[mask.to_numpy()]]


def brands(catalog: list[DeviceSummary]) -> list[str]:
    """Distinct lower-cased brands, in order of first appearance."""
    if not catalog:
        return []
    return list(_catalog_frame(catalog)["brand"].str.lower().unique())


class Debouncer:
    """
    Delays *callback* until *delay* seconds pass without a new trigger.

    Each ``trigger`` cancels the pending call and schedules a new one, so a
    burst of triggers results in a single call with the last arguments.
    """

    def __init__(self, delay: float, callback: Callable[..., Any]):
        self.delay = delay
        self._callback = callback
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._args: tuple = ()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def trigger(self, *args) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._args = args
            self._timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            self._drop_pending()

    def flush(self) -> None:
        """Run the pending call now instead of waiting for the delay."""
        with self._lock:
            if self._timer is None:
                return
            args = self._args
            self._drop_pending()
        self._callback(*args)

    def _drop_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        # A timer that already started firing must not run the callback
        self._generation += 1

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            args = self._args
            self._timer = None
        self._callback(*args)


class DeviceBrowser:
    """
    Controller for one device list page.

    Owns the fetched catalog and the page's ``ViewState``. Brand filter changes
    apply at once; search input is debounced by *quiescence* seconds.
    *on_change* is called with ``(visible, state)`` after every recomputation.
    """

    def __init__(
        self,
        source: DataSource,
        on_change: Optional[Callable[[list[DeviceSummary], ViewState], None]] = None,
        quiescence: float = SEARCH_DEBOUNCE_SECONDS,
    ):
        self.source = source
        self.catalog: list[DeviceSummary] = []
        self.state = ViewState()
        self.visible: list[DeviceSummary] = []
        self._on_change = on_change
        self._lock = threading.Lock()
        self._search = Debouncer(quiescence, self._apply_query)

    def load(self) -> list[DeviceSummary]:
        self.catalog = load_catalog(self.source)
        self._recompute()
        return self.visible

    def set_filter(self, brand: str) -> None:
        with self._lock:
            self.state = self.state.with_filter(brand)
        self._recompute()

    def set_search(self, text: str) -> None:
        self._search.trigger(text)

    def close(self) -> None:
        self._search.cancel()

    def _apply_query(self, text: str) -> None:
        with self._lock:
            self.state = self.state.with_query(text)
        self._recompute()

    def _recompute(self) -> None:
        with self._lock:
            state = self.state
            self.visible = visible_devices(self.catalog, state.active_filter, state.query)
            visible = self.visible
        if self._on_change is not None:
            self._on_change(visible, state)
