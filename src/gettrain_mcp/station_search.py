"""Offline station catalogue using bundled station data.

Loads stations.json once, then answers name/id translation for the rail API
and accent-folded, case-insensitive substring search across all name variants.
"""

import json
import unicodedata
from functools import lru_cache
from importlib import resources

from .errors import StationLookupError


def _strip_accents(text: str) -> str:
    """Remove accents/diacritics from text via NFKD decomposition."""
    nfkd = unicodedata.normalize("NFKD", text)
    return "".join(c for c in nfkd if not unicodedata.combining(c))


def _normalize(text: str) -> str:
    """Normalize text for search: strip accents and casefold."""
    return _strip_accents(text).casefold()


@lru_cache(maxsize=1)
def _load_stations() -> dict[str, dict]:
    """Load station data from bundled JSON, keyed by station id.

    Each station gets a '_search_text' field: all name variants joined and
    normalized for fast substring matching.
    """
    data_files = resources.files("gettrain_mcp").joinpath("data")
    stations_file = data_files.joinpath("stations.json")
    raw = json.loads(stations_file.read_text(encoding="utf-8"))

    stations = {}
    for station in raw:
        names = [*station.get("Eng", []), *station.get("Heb", [])]
        station["_search_text"] = _normalize(" ".join(n for n in names if n))
        stations[str(station["Id"])] = station

    return stations


def station_id_for_name(name: str) -> int:
    """Resolve a canonical English station name to its rail API id.

    Raises:
        StationLookupError: No station carries that name.
    """
    wanted = name.casefold()
    for station_id, station in _load_stations().items():
        for eng_name in station.get("Eng", []):
            if eng_name.casefold() == wanted:
                return int(station_id)
    raise StationLookupError(name)


def station_name_for_id(station_id: int | str) -> str:
    """Return the primary English name of a station id."""
    station = _load_stations().get(str(station_id))
    if station is None:
        return f"Unknown Station {station_id}"
    eng_names = station.get("Eng") or []
    return eng_names[0] if eng_names else f"Station {station_id}"


def search_stations(query: str) -> list[dict]:
    """Search stations by name with accent-insensitive substring matching.

    Args:
        query: Search string (e.g., "Tel Aviv", "netivot", "חיפה")

    Returns:
        List of matching station dicts with keys: Id, Eng, Heb.
    """
    if not query or not query.strip():
        return []

    normalized_query = _normalize(query.strip())

    results = []
    for station in _load_stations().values():
        if normalized_query in station["_search_text"]:
            # Return a copy without the internal _search_text field
            result = {k: v for k, v in station.items() if k != "_search_text"}
            results.append(result)

    return results
