"""Resolve a device id to the record shown on its download page."""

import logging
from typing import Optional

from pydantic import ValidationError

from catalog import DataSource, DataSourceError, load_catalog
from models import DeviceRecord, DeviceSummary

logger = logging.getLogger(__name__)


class ResolveError(Exception):
    """The device page has nothing to show."""


class MissingDeviceId(ResolveError):
    def __init__(self):
        super().__init__("Device ID not found in URL")


class DeviceNotFound(ResolveError):
    def __init__(self, device_id: str):
        super().__init__("Device not found")
        self.device_id = device_id


def _require_id(device_id: Optional[str]) -> str:
    if not device_id:
        raise MissingDeviceId()
    return device_id


def find_device(device_id: str, catalog: list[DeviceSummary]) -> DeviceSummary:
    for device in catalog:
        if device.id == device_id:
            return device
    raise DeviceNotFound(device_id)


def enrich(summary: DeviceSummary, source: DataSource) -> DeviceRecord:
    """
    Fetch the detail record referenced by *summary* and lay it over the
    summary fields.

    Failing to fetch, decode or validate the detail record is not an error
    for the page: the summary itself is returned instead.
    """
    if not summary.data_file:
        return DeviceRecord.from_summary(summary)

    try:
        payload = source.fetch_json(summary.data_file)
    except DataSourceError as e:
        logger.warning(f"Using summary for {summary.id}: {e}")
        return DeviceRecord.from_summary(summary)

    if not isinstance(payload, dict):
        logger.warning(
            f"Using summary for {summary.id}: {summary.data_file} holds "
            f"{type(payload).__name__}, expected an object"
        )
        return DeviceRecord.from_summary(summary)

    merged = summary.model_dump(by_alias=True, exclude_none=True)
    merged.update(payload)
    merged["id"] = summary.id
    try:
        return DeviceRecord.model_validate(merged)
    except ValidationError as e:
        logger.warning(f"Using summary for {summary.id}: invalid detail record: {e}")
        return DeviceRecord.from_summary(summary)


def resolve_device(
    device_id: Optional[str],
    catalog: list[DeviceSummary],
    source: DataSource,
) -> DeviceRecord:
    """Look up *device_id* in *catalog* and return its (possibly enriched) record."""
    device_id = _require_id(device_id)
    return enrich(find_device(device_id, catalog), source)


def load_device(device_id: Optional[str], source: DataSource) -> DeviceRecord:
    """Load the catalog from *source* and resolve *device_id* against it.

    The id is checked before anything is fetched. ``LoadError`` from the
    catalog propagates unchanged.
    """
    device_id = _require_id(device_id)
    return resolve_device(device_id, load_catalog(source), source)
