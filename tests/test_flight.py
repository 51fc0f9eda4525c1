import httpx
import pytest

from ahamai.tools import flight


def opensky_state(callsign, speed=250.0):
    # OpenSky state vector: icao24, callsign, origin, time_position, last_contact,
    # lon, lat, baro_altitude, on_ground, velocity, true_track, ...
    return ["4ca1fa", callsign, "United Kingdom", 0, 0, -30.5, 52.1, 11000.0, False, speed, 270.0]


def test_flight_tracked_live_from_opensky(run_tool):
    def handler(request):
        assert request.url.host == "opensky-network.org"
        return httpx.Response(200, json={"states": [
            opensky_state(None),
            opensky_state("DLH400  "),
            opensky_state("BAW123  "),
        ]})

    card = run_tool(flight.execute, flight.FlightArgs(flight_number="ba123", date="2024-05-01"), handler)

    assert card["status_code"] == "success"
    assert card["type"] == "flight"
    assert card["flightNumber"] == "BA123"
    assert card["date"] == "2024-05-01"

    status = card["status"]
    assert status["live"] is True
    assert status["airline"] == "British Airways"
    assert status["aircraft"]["currentPosition"] == {"lat": 52.1, "lon": -30.5}
    assert status["aircraft"]["speed"] == pytest.approx(900.0)
    assert status["aircraft"]["heading"] == 270.0

    assert card["route"]["departure"]["code"] == "LHR"
    assert card["route"]["timezone"] == {"departure": "GMT", "arrival": "EST"}
    assert card["aircraft"]["type"] == "Airbus A350-1000"
    assert card["weather"] == {}

    analysis = card["analysis"]
    assert analysis["phase"] == "cruise"
    assert analysis["status"] == "in_flight"
    assert analysis["onTime"] is True
    assert analysis["summary"] == (
        "Flight BA123 is currently in flight and is 50% complete on its journey and is on time. "
        "The flight covers 1000 km with a flight time of 4h 0m"
    )


def test_flight_falls_back_to_aviationstack(run_tool, monkeypatch):
    monkeypatch.setenv("AVIATIONSTACK_API_KEY", "k-123")
    seen = {}

    def handler(request):
        if request.url.host == "opensky-network.org":
            return httpx.Response(200, json={"states": []})
        seen.update(request.url.params)
        return httpx.Response(200, json={"data": [{
            "flight_status": "active",
            "airline": {"name": "Delta Air Lines", "iata": "DL"},
            "departure": {"iata": "ATL", "airport": "Hartsfield-Jackson", "delay": 12,
                          "scheduled": "2024-05-01T10:00:00+00:00", "gate": "B12"},
            "arrival": {"iata": "SEA", "airport": "Seattle-Tacoma"},
        }]})

    card = run_tool(
        flight.execute,
        flight.FlightArgs(flight_number="DL1234", include_route=False, include_aircraft=False),
        handler,
    )

    assert seen == {"access_key": "k-123", "flight_iata": "DL1234"}
    status = card["status"]
    assert status["live"] is False
    assert status["airline"] == "Delta Air Lines"
    assert status["departure"]["code"] == "ATL"
    assert status["departure"]["gate"] == "B12"
    assert status["arrival"]["gate"] == "Unknown"
    assert card["route"] == {}
    assert card["aircraft"] == {}

    analysis = card["analysis"]
    assert analysis["onTime"] is False
    assert analysis["phase"] == "takeoff"
    assert "with a 12 minute delay" in analysis["summary"]


def test_flight_weather_for_both_airports(run_tool):
    def handler(request):
        if request.url.host == "opensky-network.org":
            return httpx.Response(200, json={"states": [opensky_state("AAL100")]})
        assert request.url.params["format"] == "j1"
        if request.url.path == "/Los Angeles":
            return httpx.Response(503)
        return httpx.Response(200, json={"current_condition": [{
            "temp_C": "18", "windspeedKmph": "11", "visibility": "10",
            "weatherDesc": [{"value": "Partly cloudy"}],
        }]})

    card = run_tool(flight.execute, flight.FlightArgs(flight_number="AA100", include_weather=True), handler)

    assert card["weather"]["departure"] == {
        "condition": "Partly cloudy", "temperature": "18°C", "windSpeed": "11 km/h", "visibility": "10 km",
    }
    assert card["weather"]["arrival"] == {"condition": "Unavailable"}


def test_unknown_airline_gets_defaults(with_client):
    assert flight.airline_info("ZZ")["name"] == "ZZ Airlines"
    assert flight.airline_aircraft("ZZ")["type"] == "Boeing 737-800"
    assert flight.route_data("ZZ9")["distance"] == 1000
    # no lookups for the placeholder city
    weather = with_client(lambda c: flight.fetch_weather(c, "ZZ9"), lambda r: httpx.Response(500))
    assert weather == {"departure": {"condition": "Unavailable"}, "arrival": {"condition": "Unavailable"}}


def test_flight_error_card(run_tool):
    card = run_tool(flight.execute, flight.FlightArgs(flight_number="XX1"), lambda r: httpx.Response(500))

    assert card["status_code"] == "error"
    assert card["error"] == "Failed to fetch flight data: All methods failed for flight XX1"


def test_flight_phases():
    assert flight.flight_phase("Boarding", 0) == "pre_flight"
    assert flight.flight_phase("In Flight", 10) == "takeoff"
    assert flight.flight_phase("active", 85) == "approach"
    assert flight.flight_phase("landed", 100) == "arrived"
    assert flight.flight_phase("scheduled", 0) == "scheduled"
