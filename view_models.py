"""
Display models for the list and device pages.

Everything here is a pure function from fetched data to plain dictionaries
consumed by the Jinja templates. Optional panels come back as ``None`` (or an
empty list) so the templates simply leave them out.
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import pandas as pd

from catalog import SEARCH_DEBOUNCE_SECONDS, brands, visible_devices
from models import Build, DeviceRecord, DeviceSummary, ViewState

ROM_NAME = os.getenv("ROM_NAME", "havocOOS")
DEFAULT_BUILD_TYPE = "Official"

# (version decrement, days back) for each synthesized prior build
SYNTHETIC_STEPS = [(Decimal("0.1"), 7), (Decimal("0.2"), 14)]

# Build date spellings found in catalogs; synthetic dates reuse the matched one
BUILD_DATE_FORMATS = ["%Y-%m-%d", "%Y/%m/%d", "%Y%m%d", "%d %B %Y", "%d %b %Y", "%B %d, %Y", "%d/%m/%Y", "%d.%m.%Y"]


def capitalize_brand(brand: str) -> str:
    return brand[:1].upper() + brand[1:]


def status_class(status: str) -> str:
    return status.lower()


def device_card(device: DeviceSummary, visible: bool = True) -> dict[str, Any]:
    return {
        "id": device.id,
        "name": device.name,
        "codename": device.codename,
        "brand": device.brand.lower(),
        "status": device.status,
        "status_class": status_class(device.status),
        "android_version": device.android_version,
        "rom_version": device.rom_version,
        "build_date": device.build_date,
        "size": device.size,
        "changelog_url": device.changelog_url,
        "visible": visible,
    }


def catalog_view(catalog: list[DeviceSummary], state: ViewState) -> dict[str, Any]:
    """
    List page model. Every catalog entry gets a card so the page can re-filter
    in place; cards outside the current view are flagged ``visible=False``.
    """
    shown = {d.id for d in visible_devices(catalog, state.active_filter, state.query)}
    return {
        "devices": [device_card(d, d.id in shown) for d in catalog],
        "brands": brands(catalog),
        "active_filter": state.active_filter.lower(),
        "query": state.query,
        "empty": not shown,
        "total": len(catalog),
        "search_delay_ms": int(SEARCH_DEBOUNCE_SECONDS * 1000),
    }


def _shift_version(version: str, decrement: Decimal) -> Optional[str]:
    try:
        value = Decimal(version)
    except (TypeError, InvalidOperation):
        return None
    if not value.is_finite():
        return None
    places = max(-value.as_tuple().exponent, -decrement.as_tuple().exponent)
    shifted = (value - decrement).quantize(Decimal(1).scaleb(-places))
    if shifted <= 0:
        return None
    return str(shifted)


def parse_build_date(text: str) -> tuple[Optional[pd.Timestamp], Optional[str]]:
    """Parse *text* with the first matching build date format."""
    for fmt in BUILD_DATE_FORMATS:
        date = pd.to_datetime(text, format=fmt, errors="coerce")
        if not pd.isna(date):
            return date, fmt
    return None, None


def synthesize_prior_builds(device: DeviceRecord) -> list[Build]:
    """
    Build history for a device that ships none: the current build described
    by the summary fields, followed by up to two derived prior versions
    (version -0.1 / 7 days earlier, version -0.2 / 14 days earlier).

    Prior rows are only derived when the ROM version is numeric and the build
    date parses. Versions keep the precision of the ROM version and dates are
    written in the same format as the build date. A device with real builds is
    returned unchanged.
    """
    if device.builds:
        return list(device.builds)

    current = Build(
        version=device.rom_version,
        build_type=DEFAULT_BUILD_TYPE,
        date=device.build_date,
        size=device.size,
    )
    builds = [current]

    date, fmt = parse_build_date(device.build_date)
    if date is None:
        return builds

    for decrement, days in SYNTHETIC_STEPS:
        version = _shift_version(device.rom_version, decrement)
        if version is None:
            continue
        builds.append(
            Build(
                version=version,
                build_type=DEFAULT_BUILD_TYPE,
                date=(date - pd.Timedelta(days=days)).strftime(fmt),
                size=device.size,
            )
        )
    return builds


def build_rows(builds: list[Build]) -> list[dict[str, Any]]:
    return [
        {
            "index": index,
            "latest": index == 0,
            "version": build.version,
            "type": build.build_type,
            "type_class": build.build_type.lower(),
            "date": build.date,
            "size": build.size,
            "md5": build.md5,
            "download_url": build.download_url,
            "changelog": list(build.changelog),
        }
        for index, build in enumerate(builds)
    ]


def maintainer_panel(device: DeviceRecord) -> Optional[dict[str, Any]]:
    maintainer = device.maintainer
    if maintainer is None:
        return None

    links = []
    if maintainer.telegram:
        links.append({"label": "Telegram", "url": f"https://t.me/{maintainer.telegram.replace('@', '')}"})
    if maintainer.xda:
        links.append({"label": "XDA", "url": maintainer.xda})
    if maintainer.email:
        links.append({"label": "Email", "url": f"mailto:{maintainer.email}"})

    return {
        "name": maintainer.name,
        "username": maintainer.username,
        "links": links,
    }


def device_page(device: DeviceRecord, synthesize_history: bool = False) -> dict[str, Any]:
    """Everything the device template needs for one resolved device."""
    builds = synthesize_prior_builds(device) if synthesize_history else list(device.builds)
    latest = builds[0] if builds else None

    return {
        "title": f"{device.name} - {ROM_NAME}",
        "header": {
            "name": device.name,
            "codename": device.codename,
            "brand": capitalize_brand(device.brand),
            "status": device.status,
            "status_class": status_class(device.status),
            "android_version": device.android_version,
            "rom_version": device.rom_version,
            "wallpaper": device.wallpaper or f"images/{device.codename}.jpg",
        },
        "builds": build_rows(builds),
        "android_version": device.android_version,
        "specs": device.device_info.model_dump() if device.device_info else None,
        "rom_info": {
            "rom_version": device.rom_version,
            "android_version": device.android_version,
            "latest_date": latest.date if latest else "N/A",
            "latest_size": latest.size if latest else "N/A",
        },
        "maintainer": maintainer_panel(device),
        "screenshots": list(device.screenshots),
        "known_issues": list(device.known_issues),
        "changelog_url": device.changelog_url,
    }


def asset_href(path: str, prefix: str = "/") -> str:
    """Link to a site asset; absolute URLs pass through verbatim."""
    if "://" in path:
        return path
    return prefix + path.lstrip("/")
