"""
Data model for the havocOOS downloads site.

JSON served by the site uses camelCase keys (``androidVersion``, ``dataFile``,
...). The models expose snake_case attributes and accept either spelling.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ALL_BRANDS = "all"


class _Snapshot(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        frozen=True,
    )


class Maintainer(_Snapshot):
    name: str
    username: str = ""
    telegram: Optional[str] = None
    xda: Optional[str] = None
    email: Optional[str] = None


class DeviceSpecs(_Snapshot):
    chipset: str = ""
    cpu: str = ""
    gpu: str = ""
    ram: str = ""
    storage: str = ""
    display: str = ""
    battery: str = ""
    camera: str = ""


class Build(_Snapshot):
    """A single downloadable build. The first build of a device is the latest."""

    version: str
    build_type: str = Field(default="", alias="type")
    date: str = ""
    size: str = ""
    md5: str = ""
    download_url: Optional[str] = None
    changelog: list[str] = Field(default_factory=list)


class DeviceSummary(_Snapshot):
    """Lightweight catalog entry, one per device in ``devices.json``."""

    id: str
    name: str
    codename: str
    brand: str
    status: str = ""
    android_version: str = ""
    rom_version: str = ""
    build_date: str = ""
    size: str = ""
    data_file: Optional[str] = None
    changelog_url: Optional[str] = None


class DeviceRecord(DeviceSummary):
    """Full per-device record: the summary fields plus the optional panels."""

    builds: list[Build] = Field(default_factory=list)
    maintainer: Optional[Maintainer] = None
    screenshots: list[str] = Field(default_factory=list)
    known_issues: list[str] = Field(default_factory=list)
    wallpaper: Optional[str] = None
    device_info: Optional[DeviceSpecs] = None

    @classmethod
    def from_summary(cls, summary: DeviceSummary) -> "DeviceRecord":
        return cls.model_validate(summary.model_dump())


class ViewState(_Snapshot):
    """Brand filter and search query of one list page."""

    active_filter: str = ALL_BRANDS
    query: str = ""

    def with_filter(self, brand: str) -> "ViewState":
        return self.model_copy(update={"active_filter": brand or ALL_BRANDS})

    def with_query(self, text: str) -> "ViewState":
        return self.model_copy(update={"query": (text or "").strip()})
