"""Catalog of the air-traffic-control feeds the player rotates through."""

from atc_relay.shared.models import Station

STATIONS: tuple[Station, ...] = (
    Station(id="sbbr3_app", name="Brasília", iata="BSB"),
    Station(id="rjoo1", name="Osaka", iata="ITM"),
    Station(id="rjtt_app_dep", name="Tokyo", iata="HND"),
    Station(id="kjfk9_s", name="New York", iata="JFK"),
    Station(id="ksfo_gnd", name="San Francisco", iata="SFO"),
    Station(id="unnt", name="Novosibirsk", iata="OVB"),
    Station(id="eidw8", name="Dublin", iata="DUB"),
    Station(id="epwa_app", name="Warsaw", iata="WAW"),
    Station(id="vhhh5", name="Hong Kong", iata="HKG"),
    Station(id="cyyz9", name="Toronto", iata="YYZ"),
)


def station_ids() -> list[str]:
    """Stream ids in rotation order."""
    return [station.id for station in STATIONS]


def find_station(key: str) -> Station | None:
    """Look a station up by stream id or IATA code (case-insensitive)."""
    key = key.strip()
    for station in STATIONS:
        if station.id == key or station.iata == key.upper():
            return station
    return None
