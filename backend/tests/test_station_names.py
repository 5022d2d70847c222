"""Tests for station-name normalization, matching and line helpers."""
from catchtrain.tfl.lines import line_color_hex, tfl_line_id
from catchtrain.tfl.names import best_matching_station_name, normalize_station_name, same_station


def test_normalize_strips_suffixes():
    assert normalize_station_name("Oxford Circus Underground Station") == "oxford circus"
    assert normalize_station_name("Paddington Station") == "paddington"
    assert normalize_station_name("  Bank  ") == "bank"


def test_normalize_punctuation_and_qualifier():
    assert normalize_station_name("King's Cross St. Pancras") == "kings cross st pancras"
    assert normalize_station_name("Edgware Road (Circle Line)") == "edgware road"
    assert normalize_station_name("Hammersmith & City") == "hammersmith & city"


def test_normalize_empty():
    assert normalize_station_name(None) == ""
    assert normalize_station_name("") == ""


def test_best_match_google_name_to_tfl_stop():
    stops = ["Warren Street", "Oxford Circus", "Green Park"]
    assert best_matching_station_name(stops, "Oxford Circus Underground Station") == "Oxford Circus"


def test_best_match_substring():
    stops = ["Euston", "King's Cross St. Pancras Underground Station", "Angel"]
    assert best_matching_station_name(stops, "King's Cross") == "King's Cross St. Pancras Underground Station"


def test_best_match_postcode():
    stops = ["Stratford", "Liverpool Street", "Bank"]
    assert best_matching_station_name(stops, "1 Finsbury Avenue, London EC2M 2PF") == "Liverpool Street"


def test_best_match_falls_back_to_last_stop():
    stops = ["Warren Street", "Oxford Circus", "Green Park"]
    assert best_matching_station_name(stops, "Somewhere Else") == "Green Park"
    assert best_matching_station_name([], "Bank") is None


def test_same_station():
    assert same_station("Green Park Underground Station", "Green Park")
    assert not same_station("Green Park", "Oxford Circus")
    assert not same_station(None, "Bank")


def test_line_ids_and_colours():
    assert tfl_line_id("Hammersmith & City") == "hammersmith-city"
    assert tfl_line_id("Elizabeth line") == "elizabeth"
    assert tfl_line_id("Victoria") == "victoria"
    assert tfl_line_id("73") is None
    assert line_color_hex("victoria") == "#0098D4"
    assert line_color_hex("unknown") == "#007AFF"
