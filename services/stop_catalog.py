"""Loading of the static stop catalog from GTFS stops files or KML."""

from __future__ import annotations

import csv
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable, Iterator, TextIO

from models.records import UNKNOWN_STOP, StopRecord
from services.errors import CatalogError

logger = logging.getLogger(__name__)

_KML_NS = "{http://www.opengis.net/kml/2.2}"
_REQUIRED_COLUMNS = {"stop_name", "stop_lat", "stop_lon"}


def load_stop_catalog(path: str | Path) -> tuple[StopRecord, ...]:
    """Read every stop from ``path``; a missing file yields an empty catalog."""
    catalog_path = Path(path)
    if not catalog_path.is_file():
        logger.warning(
            "Stop catalog not found; serving vehicles only",
            extra={"path": str(catalog_path)},
        )
        return ()

    if catalog_path.suffix.lower() == ".kml":
        stops = tuple(parse_kml_stops(catalog_path.read_bytes()))
    else:
        with catalog_path.open("r", encoding="utf-8-sig", newline="") as handle:
            stops = tuple(parse_csv_stops(handle))

    logger.info(
        "Loaded stop catalog",
        extra={"path": str(catalog_path), "stop_count": len(stops)},
    )
    return stops


def parse_csv_stops(handle: TextIO) -> Iterator[StopRecord]:
    reader = csv.DictReader(handle)
    if not reader.fieldnames:
        raise CatalogError("Stop file is missing a header row.")

    normalized = {name.lower().strip(): name for name in reader.fieldnames}
    missing = sorted(_REQUIRED_COLUMNS - normalized.keys())
    if missing:
        raise CatalogError(f"Stop file missing required columns: {', '.join(missing)}")

    name_col = normalized["stop_name"]
    lat_col = normalized["stop_lat"]
    lon_col = normalized["stop_lon"]

    for row_number, row in enumerate(reader, start=2):
        try:
            latitude = float((row.get(lat_col) or "").strip())
            longitude = float((row.get(lon_col) or "").strip())
        except ValueError:
            logger.warning(
                "Skipping stop row with invalid coordinates",
                extra={"reason": f"row {row_number}"},
            )
            continue
        name = (row.get(name_col) or "").strip() or UNKNOWN_STOP
        yield StopRecord(name=name, latitude=latitude, longitude=longitude)


def parse_kml_stops(document: bytes) -> Iterator[StopRecord]:
    try:
        root = ET.fromstring(document)
    except ET.ParseError as exc:
        raise CatalogError(f"Stop file is not valid KML: {exc}") from exc

    for placemark in _iter_tag(root.iter(), "Placemark"):
        point = next(_iter_tag(placemark.iter(), "Point"), None)
        if point is None:
            continue
        coordinates = next(_iter_tag(point.iter(), "coordinates"), None)
        if coordinates is None or not coordinates.text:
            continue
        parts = coordinates.text.strip().split(",")
        try:
            longitude = float(parts[0])
            latitude = float(parts[1])
        except (IndexError, ValueError):
            logger.warning(
                "Skipping placemark with invalid coordinates",
                extra={"reason": coordinates.text.strip()},
            )
            continue
        name_element = next(_iter_tag(placemark, "name"), None)
        name = (name_element.text or "").strip() if name_element is not None else ""
        yield StopRecord(name=name or UNKNOWN_STOP, latitude=latitude, longitude=longitude)


def _iter_tag(elements: Iterable[ET.Element], tag: str) -> Iterator[ET.Element]:
    # KML files appear both with and without the 2.2 namespace.
    for element in elements:
        if element.tag in (tag, f"{_KML_NS}{tag}"):
            yield element
