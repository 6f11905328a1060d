"""Decoding of GTFS-realtime vehicle position payloads."""

from __future__ import annotations

from google.protobuf import message as protobuf_message
from google.transit import gtfs_realtime_pb2

from models.records import UNKNOWN, VehicleObservation
from services.errors import DecodeError


def parse_feed_message(payload: bytes) -> gtfs_realtime_pb2.FeedMessage:
    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        feed.ParseFromString(payload)
    except protobuf_message.DecodeError as exc:
        raise DecodeError(f"Invalid feed payload: {exc}") from exc
    return feed


def decode_feed(payload: bytes) -> list[VehicleObservation]:
    """Turn a raw FeedMessage buffer into vehicle observations.

    Entities without a vehicle position are dropped. Missing vehicle or
    route identifiers are reported as ``UNKNOWN``. Coordinates are passed
    through unchecked.
    """
    feed = parse_feed_message(payload)

    observations: list[VehicleObservation] = []
    for entity in feed.entity:
        if not entity.HasField("vehicle"):
            continue
        vehicle = entity.vehicle
        if not vehicle.HasField("position"):
            continue
        observations.append(
            VehicleObservation(
                vehicle_id=vehicle.vehicle.id or UNKNOWN,
                route_id=vehicle.trip.route_id or UNKNOWN,
                latitude=float(vehicle.position.latitude),
                longitude=float(vehicle.position.longitude),
            )
        )
    return observations
