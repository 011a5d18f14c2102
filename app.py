"""
havocOOS Downloads Web Application

Browse the supported devices, filter them by brand or search by name and
codename, and open a device page listing its builds.
"""

import logging
import os
from pathlib import Path
from typing import Any

from flask import Flask, abort, jsonify, render_template, request, send_from_directory, url_for

from catalog import DataSource, LoadError, load_catalog, visible_devices
from device_detail import DeviceNotFound, MissingDeviceId, ResolveError, load_device
from models import ALL_BRANDS, ViewState
from view_models import ROM_NAME, asset_href, catalog_view, device_page

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Data source: a base URL or a local directory holding data/devices.json
SITE_ROOT = os.getenv("ROM_SITE_ROOT", str(Path(__file__).parent))
REQUEST_TIMEOUT = float(os.environ["ROM_REQUEST_TIMEOUT"]) if os.getenv("ROM_REQUEST_TIMEOUT") else None
SYNTHETIC_HISTORY = os.getenv("ROM_SYNTHETIC_HISTORY", "0") == "1"

app.config.update(
    SITE_ROOT=SITE_ROOT,
    REQUEST_TIMEOUT=REQUEST_TIMEOUT,
    SYNTHETIC_HISTORY=SYNTHETIC_HISTORY,
)

LOAD_ERROR_MESSAGE = "Failed to load devices"


def get_source() -> DataSource:
    return DataSource(app.config["SITE_ROOT"], timeout=app.config["REQUEST_TIMEOUT"])


def get_view_state() -> ViewState:
    return ViewState().with_filter(request.args.get("filter", ALL_BRANDS)).with_query(request.args.get("q", ""))


def error_status(error: Exception) -> int:
    if isinstance(error, MissingDeviceId):
        return 400
    if isinstance(error, DeviceNotFound):
        return 404
    return 502


def error_message(error: Exception) -> str:
    if isinstance(error, ResolveError):
        return str(error)
    return LOAD_ERROR_MESSAGE


@app.context_processor
def site_links() -> dict[str, Any]:
    return {
        "rom_name": ROM_NAME,
        "device_url": lambda device_id: url_for("device", id=device_id),
        "listing_url": url_for("index"),
        "asset_url": asset_href,
    }


@app.route("/download.html")
@app.route("/")
def index():
    """Serve the device list page."""
    state = get_view_state()
    try:
        catalog = load_catalog(get_source())
    except LoadError as e:
        logger.error(f"Error loading device list: {e}")
        return render_template("error.html", message=LOAD_ERROR_MESSAGE), 502
    return render_template("index.html", **catalog_view(catalog, state))


@app.route("/device")
@app.route("/device.html")
def device():
    """Serve the download page of the device given by ?id=."""
    try:
        record = load_device(request.args.get("id"), get_source())
    except (LoadError, ResolveError) as e:
        logger.error(f"Error loading device page: {e}")
        return render_template("error.html", message=error_message(e)), error_status(e)
    return render_template("device.html", **device_page(record, app.config["SYNTHETIC_HISTORY"]))


@app.route("/api/devices")
def api_devices():
    """Return the filtered device list as JSON."""
    state = get_view_state()
    try:
        catalog = load_catalog(get_source())
    except LoadError as e:
        logger.error(f"Error loading device list: {e}")
        return jsonify({"error": LOAD_ERROR_MESSAGE}), 502
    visible = visible_devices(catalog, state.active_filter, state.query)
    return jsonify([d.model_dump(by_alias=True) for d in visible])


@app.route("/api/devices/<device_id>")
def api_device(device_id: str):
    """Return one resolved device record as JSON."""
    try:
        record = load_device(device_id, get_source())
    except (LoadError, ResolveError) as e:
        logger.error(f"Error resolving device {device_id}: {e}")
        return jsonify({"error": error_message(e)}), error_status(e)
    return jsonify(record.model_dump(by_alias=True))


@app.route("/<any(data, images):folder>/<path:filename>")
def site_file(folder: str, filename: str):
    """Serve JSON data and images straight from a local site root."""
    source = get_source()
    if source.is_remote:
        abort(404)
    return send_from_directory(Path(source.root) / folder, filename)


if __name__ == "__main__":
    app.run(host="127.0.0.1", port=8080, debug=True)
