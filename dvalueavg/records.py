"""
Record types shared by the join and average jobs.

All records are immutable dataclasses so they can be hashed, grouped and
pickled into intermediate partition files by the runtime.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

from dvalueavg.config import DELIMITER, TAB_DELIMITER, MIN_DEVICE_ID, MAX_DEVICE_ID, NULL_SYMBOL
from dvalueavg.errors import EmptyGroupInvariantViolation, MalformedRecordError

# int() and float() also take underscores, surrounding whitespace and
# non-ASCII digits; ids must be plain ASCII decimal integers
DEVICE_ID_PATTERN = re.compile(r'[+-]?[0-9]+')


def split_fields(line: str, min_fields: int) -> list:
    """Split a delimited line, requiring at least min_fields fields"""
    fields = line.split(DELIMITER)
    if len(fields) < min_fields:
        raise MalformedRecordError(f"Expected at least {min_fields} fields", line)
    return fields


def parse_device_id(text: str, record: str = None) -> int:
    """Parse a device id field"""
    if not DEVICE_ID_PATTERN.fullmatch(text):
        raise MalformedRecordError(f"Invalid device id {text!r}", record)
    return int(text)


def parse_value(text: str, record: str = None) -> float:
    """Parse a numeric reading"""
    if '_' in text or not text.isascii():
        raise MalformedRecordError(f"Invalid value {text!r}", record)
    try:
        return float(text)
    except ValueError:
        raise MalformedRecordError(f"Invalid value {text!r}", record) from None


@dataclass(frozen=True)
class DeviceFact:
    """One line of the device registry"""
    device_id: int
    device_type: str

    @classmethod
    def parse(cls, line: str) -> 'DeviceFact':
        fields = split_fields(line, 2)
        return cls(parse_device_id(fields[0], line), fields[1])


@dataclass(frozen=True)
class ValueFact:
    """
    One reading from the values dataset, value kept as text until aggregation.

    The value field is only required for retained readings; a dropped line
    may stop after the date and parses with value None.
    """
    device_id: int
    date: str
    value: Optional[str] = None

    @classmethod
    def parse(cls, line: str) -> 'ValueFact':
        fields = split_fields(line, 2)
        fact = cls(parse_device_id(fields[0], line), fields[1])
        if not fact.is_retained():
            return fact
        if len(fields) < 3:
            raise MalformedRecordError("Expected at least 3 fields", line)
        return cls(fact.device_id, fact.date, fields[2])

    def is_retained(self) -> bool:
        """Only readings of devices 1-9 with a known date take part in the join"""
        return MIN_DEVICE_ID < self.device_id < MAX_DEVICE_ID and self.date != NULL_SYMBOL


@dataclass(frozen=True)
class DevicePayload:
    """Join payload tagged as coming from the registry"""
    device_type: str


@dataclass(frozen=True)
class ValuePayload:
    """Join payload tagged as coming from the values dataset"""
    date: str
    value: str


TaggedPayload = Union[DevicePayload, ValuePayload]


@dataclass(frozen=True)
class CompositeKey:
    """
    (date, device type) grouping key.

    str() gives the internal form ``date,type`` used between the two jobs;
    external() gives the tab separated form written to the final output.
    Ordering is not defined here, see jobs.avg_job.compare_keys.
    """
    date: str
    device_type: str

    def __str__(self):
        return f"{self.date}{DELIMITER}{self.device_type}"

    def external(self) -> str:
        return f"{self.date}{TAB_DELIMITER}{self.device_type}"

    @classmethod
    def parse(cls, text: str) -> 'CompositeKey':
        date, sep, device_type = text.partition(DELIMITER)
        if not sep:
            raise MalformedRecordError("Composite key missing delimiter", text)
        return cls(date, device_type)


@dataclass(frozen=True)
class Aggregate:
    """Running (sum, count) pair; merge is associative and commutative"""
    sum: float = 0.0
    count: int = 0

    @classmethod
    def of(cls, value: float) -> 'Aggregate':
        return cls(float(value), 1)

    @classmethod
    def lift(cls, value) -> 'Aggregate':
        """Accept either a raw reading or a partial aggregate from a combiner"""
        if isinstance(value, Aggregate):
            return value
        return cls.of(value)

    def merge(self, other: 'Aggregate') -> 'Aggregate':
        return Aggregate(self.sum + other.sum, self.count + other.count)

    def average(self) -> float:
        if self.count == 0:
            raise EmptyGroupInvariantViolation("Cannot average an empty group")
        return self.sum / self.count


@dataclass(frozen=True)
class AverageRow:
    """One line of the final output"""
    date: str
    device_type: str
    average: float

    @property
    def key(self) -> CompositeKey:
        return CompositeKey(self.date, self.device_type)

    def to_line(self) -> str:
        return TAB_DELIMITER.join([self.date, self.device_type, repr(self.average)])

    @classmethod
    def parse(cls, line: str) -> 'AverageRow':
        fields = line.rstrip('\n').split(TAB_DELIMITER)
        if len(fields) != 3:
            raise MalformedRecordError("Expected date, type and average", line)
        return cls(fields[0], fields[1], parse_value(fields[2], line))
