import os
import shutil
from pathlib import Path

from flask import render_template

from app import app, get_source
from catalog import LoadError, load_catalog
from device_detail import ResolveError, resolve_device
from models import ViewState
from view_models import asset_href, catalog_view, device_page


def device_filename(device_id: str) -> str:
    return f"devices/{device_id}.html"


def build(output_dir: str = "site"):
    """Build the list page and one page per device for static hosting."""
    out = Path(output_dir)
    source = get_source()

    print(f"Loading device catalog from {source.root}...")
    try:
        catalog = load_catalog(source)
    except LoadError as e:
        print(f"Build aborted: {e}")
        raise

    (out / "devices").mkdir(parents=True, exist_ok=True)

    with app.test_request_context():
        print("Rendering index.html...")
        html = render_template(
            "index.html",
            listing_url="index.html",
            device_url=device_filename,
            asset_url=asset_href,
            **catalog_view(catalog, ViewState()),
        )
        (out / "index.html").write_text(html, encoding="utf-8")

        for summary in catalog:
            try:
                record = resolve_device(summary.id, catalog, source)
            except ResolveError as e:
                print(f"Skipping {summary.id}: {e}")
                continue
            print(f"Rendering {device_filename(summary.id)}...")
            html = render_template(
                "device.html",
                listing_url="../index.html",
                asset_url=lambda path: asset_href(path, prefix="../"),
                **device_page(record, app.config["SYNTHETIC_HISTORY"]),
            )
            (out / device_filename(summary.id)).write_text(html, encoding="utf-8")

    if not source.is_remote:
        for folder in ("data", "images"):
            src = Path(source.root) / folder
            if os.path.isdir(src):
                print(f"Copying {folder}/...")
                shutil.copytree(src, out / folder, dirs_exist_ok=True)

    print(f"Build complete. Files ready for static hosting in {out}/")
    return out


if __name__ == "__main__":
    build()
