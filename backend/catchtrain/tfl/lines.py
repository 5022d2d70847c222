"""Line display names (as Google Directions reports them) to TfL line ids, and line colours."""

_LINE_IDS: dict[str, str] = {
    "bakerloo": "bakerloo",
    "central": "central",
    "circle": "circle",
    "district": "district",
    "hammersmith & city": "hammersmith-city",
    "jubilee": "jubilee",
    "metropolitan": "metropolitan",
    "northern": "northern",
    "piccadilly": "piccadilly",
    "victoria": "victoria",
    "waterloo & city": "waterloo-city",
    "london overground": "london-overground",
    "elizabeth": "elizabeth",
    "elizabeth line": "elizabeth",
    "tfl rail": "elizabeth",
    "dlr": "dlr",
    "tram": "tram",
}

_LINE_COLORS: dict[str, str] = {
    "bakerloo": "#B36305",
    "central": "#E32017",
    "circle": "#FFD300",
    "district": "#00782A",
    "hammersmith-city": "#F3A9BB",
    "jubilee": "#A0A5A9",
    "metropolitan": "#9B0056",
    "northern": "#000000",
    "piccadilly": "#003688",
    "victoria": "#0098D4",
    "waterloo-city": "#95CDBA",
    "dlr": "#00AFAD",
    "london-overground": "#EE7C0E",
    "tfl-rail": "#0019A8",
    "elizabeth": "#6950A1",
}

DEFAULT_LINE_COLOR = "#007AFF"


def tfl_line_id(line_name: str | None) -> str | None:
    """ "Hammersmith & City" -> "hammersmith-city". None for anything TfL has no tube-style line for."""
    if not line_name:
        return None
    key = " ".join(line_name.strip().lower().split())
    if key in _LINE_IDS:
        return _LINE_IDS[key]
    if key.endswith(" line") and key[: -len(" line")] in _LINE_IDS:
        return _LINE_IDS[key[: -len(" line")]]
    return None


def line_color_hex(line_id: str | None) -> str:
    return _LINE_COLORS.get((line_id or "").lower(), DEFAULT_LINE_COLOR)
