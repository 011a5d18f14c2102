"""
Tests for the Flask pages, the JSON API and the static build.

Run with: pytest tests/test_app.py -v
"""

import json
import re
import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app import app
from build_static import build
from catalog import LoadError

REPO_ROOT = Path(__file__).parent.parent
CARD_PATTERN = re.compile(r'<div class="device-card" data-id="([^"]+)"([^>]*)>')


def card_visibility(html: str) -> dict[str, bool]:
    return {device_id: "display: none" not in attrs for device_id, attrs in CARD_PATTERN.findall(html)}


@pytest.fixture
def client():
    app.config.update(TESTING=True, SITE_ROOT=str(REPO_ROOT), SYNTHETIC_HISTORY=False)
    with app.test_client() as client:
        yield client


@pytest.fixture
def broken_site(tmp_path):
    app.config.update(TESTING=True, SITE_ROOT=str(tmp_path))
    yield tmp_path
    app.config.update(SITE_ROOT=str(REPO_ROOT))


class TestListPage:
    """Tests for the device list page."""

    def test_lists_all_devices(self, client):
        """Test that the list page shows a card for every device."""
        response = client.get("/")
        html = response.get_data(as_text=True)

        assert response.status_code == 200
        assert "OnePlus 9 Pro" in html
        assert "POCO F5" in html
        assert "/device.html?id=oneplus-9-pro" in html

    def test_download_alias(self, client):
        """Test that /download.html serves the list page."""
        assert client.get("/download.html").status_code == 200

    def test_brand_filter(self, client):
        """Test that a brand filter hides the other brands' cards."""
        cards = card_visibility(client.get("/?filter=xiaomi").get_data(as_text=True))
        assert cards == {"oneplus-9-pro": False, "oneplus-8t": False, "poco-f5": True}

    def test_search(self, client):
        """Test that a search query hides cards that do not match."""
        cards = card_visibility(client.get("/?q=kebab").get_data(as_text=True))
        assert [device_id for device_id, shown in cards.items() if shown] == ["oneplus-8t"]

    def test_search_keeps_every_card(self, client):
        """Test that a searched page still carries every card for in-place filtering."""
        html = client.get("/?q=kebab").get_data(as_text=True)
        cards = card_visibility(html)

        assert list(cards) == ["oneplus-9-pro", "oneplus-8t", "poco-f5"]
        assert sum(cards.values()) == 1
        assert 'value="kebab"' in html

    def test_search_delay_is_rendered(self, client):
        """Test that the page script uses the catalog's debounce delay."""
        html = client.get("/").get_data(as_text=True)
        assert "const searchDelay = 300;" in html

    def test_no_matches(self, client):
        """Test that a query matching nothing shows the empty message."""
        response = client.get("/?q=nokia")
        html = response.get_data(as_text=True)

        assert response.status_code == 200
        assert "No devices found" in html
        assert 'id="noResults" style' not in html
        assert len(card_visibility(html)) == 3
        assert not any(card_visibility(html).values())

    def test_load_failure(self, client, broken_site):
        """Test that a catalog load failure renders the error panel."""
        response = client.get("/")
        html = response.get_data(as_text=True)

        assert response.status_code == 502
        assert "Failed to load devices" in html
        assert "Back to Downloads" in html


class TestDevicePage:
    """Tests for the device download page."""

    def test_enriched_device(self, client):
        """Test a device page built from its detail record."""
        response = client.get("/device.html?id=oneplus-9-pro")
        html = response.get_data(as_text=True)

        assert response.status_code == 200
        assert "v2.1" in html
        assert "Latest" in html
        assert "https://t.me/arjunrao" in html
        assert "Known Issues" in html
        assert "Snapdragon 888" in html

    def test_summary_only_device(self, client):
        """Test a device page for a device without a detail file."""
        html = client.get("/device?id=poco-f5").get_data(as_text=True)
        assert "POCO F5" in html
        assert "No downloads available" in html
        assert "Maintainer" not in html

    def test_synthetic_history(self, client):
        """Test that synthetic prior builds appear when enabled."""
        app.config["SYNTHETIC_HISTORY"] = True
        html = client.get("/device?id=poco-f5").get_data(as_text=True)
        assert "v2.0" in html
        assert "v1.9" in html
        assert "2024-05-06" in html

    def test_missing_id(self, client):
        """Test that a missing id returns 400."""
        response = client.get("/device.html")
        assert response.status_code == 400
        assert "Device ID not found in URL" in response.get_data(as_text=True)

    def test_unknown_id(self, client):
        """Test that an unknown id returns 404."""
        response = client.get("/device.html?id=nokia-3310")
        assert response.status_code == 404
        assert "Device not found" in response.get_data(as_text=True)

    def test_load_failure(self, client, broken_site):
        """Test that a catalog load failure returns 502."""
        response = client.get("/device.html?id=oneplus-9-pro")
        assert response.status_code == 502
        assert "Failed to load devices" in response.get_data(as_text=True)


class TestApi:
    """Tests for the JSON API."""

    def test_devices(self, client):
        """Test the device list endpoint."""
        data = client.get("/api/devices?filter=oneplus").get_json()
        assert [d["id"] for d in data] == ["oneplus-9-pro", "oneplus-8t"]
        assert data[0]["androidVersion"] == "14"
        assert data[0]["dataFile"] == "data/devices/lemonadep.json"

    def test_device(self, client):
        """Test the single device endpoint."""
        data = client.get("/api/devices/oneplus-8t").get_json()
        assert data["name"] == "OnePlus 8T"
        assert data["builds"][0]["type"] == "Unofficial"
        assert data["builds"][0]["downloadUrl"].endswith("/download")
        assert data["maintainer"]["email"] == "lena.fischer@example.org"

    def test_unknown_device(self, client):
        """Test that an unknown device returns a JSON 404."""
        response = client.get("/api/devices/nokia-3310")
        assert response.status_code == 404
        assert response.get_json() == {"error": "Device not found"}

    def test_load_failure(self, client, broken_site):
        """Test that a catalog load failure returns a JSON 502."""
        response = client.get("/api/devices")
        assert response.status_code == 502
        assert response.get_json() == {"error": "Failed to load devices"}

    def test_data_passthrough(self, client):
        """Test that data files are served from the site root."""
        response = client.get("/data/devices.json")
        assert response.status_code == 200
        assert len(json.loads(response.get_data(as_text=True))["devices"]) == 3


class TestStaticBuild:
    """Tests for build_static.build."""

    def test_build(self, tmp_path):
        """Test that the static build writes every page and copies the data."""
        app.config.update(SITE_ROOT=str(REPO_ROOT), SYNTHETIC_HISTORY=False)
        out = build(str(tmp_path / "site"))

        index = (out / "index.html").read_text(encoding="utf-8")
        assert "devices/oneplus-9-pro.html" in index
        for device_id in ("oneplus-9-pro", "oneplus-8t", "poco-f5"):
            assert (out / "devices" / f"{device_id}.html").exists()

        page = (out / "devices" / "oneplus-9-pro.html").read_text(encoding="utf-8")
        assert "../index.html" in page
        assert "../images/lemonadep.jpg" in page
        assert (out / "data" / "devices.json").exists()

    def test_build_aborts_on_load_failure(self, tmp_path, broken_site):
        """Test that the build stops when the catalog cannot be loaded."""
        with pytest.raises(LoadError):
            build(str(tmp_path / "site"))
