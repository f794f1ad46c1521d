"""Demo flight provider served in-process.

Registered as the ``mock_flights`` tool so the travel category always has a
backup when the live provider is down or rate limited.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict

from neurodrive.core.logging import get_logger

__all__ = ["MOCK_FLIGHTS", "router"]

logger = get_logger(name=__name__)

router = APIRouter(tags=["providers"])

MOCK_FLIGHTS: tuple[dict[str, Any], ...] = (
    {
        "airline": "United Airlines",
        "departureTime": "08:00",
        "arrivalTime": "11:30",
        "duration": "3h 30m",
        "price": 299,
        "stops": 0,
        "origin": "SFO",
        "destination": "JFK",
        "flightNumber": "UA123",
        "aircraft": "Boeing 737",
        "bookingClass": "ECONOMY",
    },
    {
        "airline": "Delta Air Lines",
        "departureTime": "10:15",
        "arrivalTime": "14:00",
        "duration": "3h 45m",
        "price": 325,
        "stops": 0,
        "origin": "SFO",
        "destination": "JFK",
        "flightNumber": "DL456",
        "aircraft": "Airbus A320",
        "bookingClass": "ECONOMY",
    },
    {
        "airline": "American Airlines",
        "departureTime": "14:30",
        "arrivalTime": "19:45",
        "duration": "5h 15m",
        "price": 249,
        "stops": 1,
        "origin": "SFO",
        "destination": "JFK",
        "flightNumber": "AA789",
        "aircraft": "Boeing 757",
        "bookingClass": "ECONOMY",
    },
)

SIMULATED_LATENCY_SECONDS = 0.5


class FlightSearchParams(BaseModel):
    model_config = ConfigDict(extra="allow")

    query: str | None = None
    origin: str | None = None
    destination: str | None = None
    date: str | None = None


def build_mock_flights(origin: str | None, destination: str | None) -> list[dict[str, Any]]:
    stamp = int(time.time() * 1000)
    return [
        {
            **flight,
            "id": f"mock-{stamp}-{index}",
            "origin": origin or flight["origin"],
            "destination": destination or flight["destination"],
        }
        for index, flight in enumerate(MOCK_FLIGHTS)
    ]


@router.post("/functions/v1/flight-search-mock", summary="Canned flight offers")
async def flight_search_mock(params: FlightSearchParams) -> dict[str, Any]:
    logger.info("mock_flights_request", origin=params.origin, destination=params.destination, query=params.query)
    await asyncio.sleep(SIMULATED_LATENCY_SECONDS)
    flights = build_mock_flights(params.origin, params.destination)
    return {
        "flights": flights,
        "searchParams": {"origin": params.origin, "destination": params.destination},
        "source": "mock",
    }
