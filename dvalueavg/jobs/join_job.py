"""
Join job: tag-and-merge equi-join of the device registry and the device values.

Each input has its own map function tagging records by source; the reduce
function receives every payload of one device id and emits the cross product
of device types and readings keyed by (date, device type).
"""

from dvalueavg.records import (
    CompositeKey,
    DeviceFact,
    DevicePayload,
    ValueFact,
    ValuePayload,
)


def project_device(key, value):
    """
    Map function for the device registry.

    Args:
        key: Byte offset of the line (unused)
        value: Registry line ``id,type,...``

    Yields:
        (device_id, DevicePayload) tuple

    Raises:
        MalformedRecordError: If the id is not an integer or the type is missing
    """
    fact = DeviceFact.parse(value)
    yield (fact.device_id, DevicePayload(fact.device_type))


def project_value(key, value):
    """
    Map function for the values dataset.

    Readings outside the device id bounds or with a null date are dropped.

    Args:
        key: Byte offset of the line (unused)
        value: Values line ``id,date,value,...``

    Yields:
        (device_id, ValuePayload) tuple for retained readings
    """
    fact = ValueFact.parse(value)
    if fact.is_retained():
        yield (fact.device_id, ValuePayload(fact.date, fact.value))


def join_reduce(key, values):
    """
    Reduce function: inner join of all payloads sharing a device id.

    Args:
        key: Device id
        values: Iterable of DevicePayload and ValuePayload in any order

    Yields:
        (CompositeKey, value text) for every device x reading pair
    """
    devices = []
    readings = []
    for payload in values:
        if isinstance(payload, DevicePayload):
            devices.append(payload)
        elif isinstance(payload, ValuePayload):
            readings.append(payload)
        else:
            raise TypeError(f"Unexpected join payload: {payload!r}")

    for device in devices:
        for reading in readings:
            yield (CompositeKey(reading.date, device.device_type), reading.value)
