"""
Station-name matching across the two naming vocabularies we consume:
Google Directions ("Oxford Circus Underground Station", "King's Cross St. Pancras")
and TfL stop points ("Oxford Circus", "King's Cross St. Pancras Underground Station").
"""
import re
import unicodedata

# Longest first so "underground station" wins over "station"
SUFFIXES = (
    " underground station",
    " overground station",
    " rail station",
    " dlr station",
    " tube station",
    " station",
    " underground",
)

_PARENTHETICAL_TAIL = re.compile(r"\s*\([^)]*\)\s*$")
_APOSTROPHES = re.compile(r"['’`]")
_NON_WORD = re.compile(r"[^a-z0-9&]+")
_POSTCODE = re.compile(r"\b([a-z]{1,2}[0-9][a-z0-9]?)\s*[0-9][a-z]{2}\b")

# Outward postcode -> stations that serve it, most central first
POSTCODE_STATIONS: dict[str, tuple[str, ...]] = {
    "ec1": ("farringdon", "barbican", "angel"),
    "ec2": ("liverpool street", "moorgate", "bank"),
    "ec3": ("tower hill", "monument", "aldgate"),
    "ec4": ("mansion house", "st pauls", "blackfriars"),
    "wc1": ("russell square", "holborn", "euston square"),
    "wc2": ("covent garden", "leicester square", "charing cross"),
    "e1": ("aldgate east", "whitechapel", "shadwell"),
    "e14": ("canary wharf", "heron quays", "south quay"),
    "e20": ("stratford",),
    "n1": ("kings cross st pancras", "angel", "old street"),
    "nw1": ("euston", "camden town", "baker street", "great portland street"),
    "se1": ("london bridge", "waterloo", "borough", "southwark"),
    "sw1": ("victoria", "westminster", "st jamess park", "pimlico"),
    "sw7": ("south kensington", "gloucester road"),
    "w1": ("oxford circus", "bond street", "tottenham court road", "piccadilly circus"),
    "w2": ("paddington", "lancaster gate", "bayswater"),
}


def normalize_station_name(name: str | None) -> str:
    """
    Lower-case, strip accents and punctuation, drop station-type suffixes and a trailing
    "(...)" qualifier. "Oxford Circus Underground Station" -> "oxford circus".
    """
    s = (name or "").strip().lower()
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = _PARENTHETICAL_TAIL.sub("", s)
    s = _APOSTROPHES.sub("", s)
    s = _NON_WORD.sub(" ", s)
    s = " ".join(s.split())
    changed = True
    while changed:
        changed = False
        for suffix in SUFFIXES:
            if s.endswith(suffix) and len(s) > len(suffix):
                s = s[: -len(suffix)].strip()
                changed = True
                break
    return s


def _postcode_outward(normalized: str) -> str | None:
    m = _POSTCODE.search(normalized)
    if m:
        return m.group(1)
    # Outward code only, e.g. "EC3N"
    token = normalized.replace(" ", "")
    if re.fullmatch(r"[a-z]{1,2}[0-9][a-z0-9]?", token):
        return token
    return None


def _postcode_candidates(normalized_target: str) -> tuple[str, ...]:
    outward = _postcode_outward(normalized_target)
    if not outward:
        return ()
    for prefix in sorted(POSTCODE_STATIONS, key=len, reverse=True):
        if outward.startswith(prefix):
            return POSTCODE_STATIONS[prefix]
    return ()


def best_matching_station_name(stop_list: list[str], raw_target_name: str) -> str | None:
    """
    Pick the entry of stop_list the rider is heading for.
    Exact normalized match, then substring containment either way, then the postcode table,
    then the last stop (target beyond the end of this segment). None only for an empty list.
    """
    if not stop_list:
        return None
    target = normalize_station_name(raw_target_name)
    normalized = [normalize_station_name(s) for s in stop_list]

    for raw, norm in zip(stop_list, normalized):
        if norm == target:
            return raw

    if target:
        for raw, norm in zip(stop_list, normalized):
            if norm and (target in norm or norm in target):
                return raw

    for candidate in _postcode_candidates(target):
        for raw, norm in zip(stop_list, normalized):
            if candidate in norm:
                return raw

    return stop_list[-1]


def same_station(a: str | None, b: str | None) -> bool:
    return bool(a) and bool(b) and normalize_station_name(a) == normalize_station_name(b)
