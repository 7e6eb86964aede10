#!/usr/bin/env python3
"""Fetch the Israel Railways station list and convert it to bundled JSON.

Downloads the station catalogue from the rail API and produces a curated
stations.json (id plus English and Hebrew name variants) for the package.

Usage:
    GETTRAIN_RAIL_API_KEY=... python scripts/update_stations.py
"""

import json
import os
import sys
from pathlib import Path

import httpx

STATIONS_URL = "https://rail-api.rail.co.il/common/api/v1/stations"
OUTPUT_PATH = (
    Path(__file__).resolve().parent.parent / "src" / "gettrain_mcp" / "data" / "stations.json"
)


def fetch_stations(url: str) -> list[dict]:
    """Download the raw station records."""
    headers = {"User-Agent": "gettrain-mcp/update-stations", "Accept": "application/json"}
    api_key = os.environ.get("GETTRAIN_RAIL_API_KEY")
    if api_key:
        headers["ocp-apim-subscription-key"] = api_key
    response = httpx.get(url, headers=headers, timeout=30)
    response.raise_for_status()
    data = response.json()
    return data.get("result", data) if isinstance(data, dict) else data


def parse_stations(raw: list[dict]) -> list[dict]:
    """Keep only the id and name variants we need."""
    stations = []
    for row in raw:
        station_id = row.get("stationId") or row.get("Id")
        eng = row.get("stationNameEn") or row.get("Eng")
        heb = row.get("stationNameHe") or row.get("Heb")
        if not station_id or not eng:
            continue
        stations.append(
            {
                "Id": str(station_id),
                "Eng": eng if isinstance(eng, list) else [eng],
                "Heb": (heb if isinstance(heb, list) else [heb]) if heb else [],
            }
        )
    return sorted(stations, key=lambda s: int(s["Id"]))


def main() -> None:
    print(f"Fetching stations from {STATIONS_URL} ...")
    try:
        raw = fetch_stations(STATIONS_URL)
    except httpx.HTTPError as e:
        sys.exit(f"Download failed: {e}")

    stations = parse_stations(raw)
    print(f"Parsed {len(stations)} stations")

    OUTPUT_PATH.parent.mkdir(parents=True, exist_ok=True)
    with open(OUTPUT_PATH, "w", encoding="utf-8") as f:
        json.dump(stations, f, ensure_ascii=False, indent=2)

    size_kb = OUTPUT_PATH.stat().st_size / 1024
    print(f"Wrote {OUTPUT_PATH} ({size_kb:.1f} KB)")


if __name__ == "__main__":
    main()
