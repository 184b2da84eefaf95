"""
Unit tests for the join job functions
"""

import random

import pytest

from dvalueavg.errors import MalformedRecordError
from dvalueavg.jobs.join_job import join_reduce, project_device, project_value
from dvalueavg.records import CompositeKey, DevicePayload, ValuePayload


class TestProjectors:
    """Tests for the tagging map functions"""

    def test_device_projector_tags_type(self):
        assert list(project_device(0, "2,sensorA")) == [(2, DevicePayload("sensorA"))]

    def test_device_projector_does_not_filter_ids(self):
        assert list(project_device(0, "42,sensorZ")) == [(42, DevicePayload("sensorZ"))]

    def test_value_projector_tags_date_and_value(self):
        assert list(project_value(0, "2,2023-01-01,10")) == [(2, ValuePayload("2023-01-01", "10"))]

    def test_value_projector_drops_out_of_range_ids(self):
        assert list(project_value(0, "0,2023-01-01,5")) == []
        assert list(project_value(0, "10,2023-01-01,5")) == []

    def test_value_projector_drops_null_dates(self):
        assert list(project_value(0, "3,\\N,5")) == []

    def test_value_projector_drops_short_lines_that_fail_the_filter(self):
        assert list(project_value(0, "0,2023-01-01")) == []
        assert list(project_value(0, "3,\\N")) == []

    def test_retained_line_without_value_is_malformed(self):
        with pytest.raises(MalformedRecordError):
            list(project_value(0, "3,2023-01-01"))

    def test_underscored_id_is_not_read_as_a_number(self):
        with pytest.raises(MalformedRecordError):
            list(project_value(0, "0_5,2023-01-01,7"))

    def test_malformed_ids_raise_instead_of_filtering(self):
        with pytest.raises(MalformedRecordError):
            list(project_value(0, "x,2023-01-01,5"))
        with pytest.raises(MalformedRecordError):
            list(project_device(0, "x,sensorA"))


class TestJoinReduce:
    """Tests for the per device id inner join"""

    def test_emits_cross_product(self):
        payloads = [
            DevicePayload("sensorA"),
            DevicePayload("sensorB"),
            ValuePayload("2023-01-01", "10"),
            ValuePayload("2023-01-02", "20"),
            ValuePayload("2023-01-03", "30"),
        ]
        joined = list(join_reduce(2, payloads))

        assert len(joined) == 2 * 3
        assert (CompositeKey("2023-01-02", "sensorB"), "20") in joined
        assert (CompositeKey("2023-01-01", "sensorA"), "10") in joined

    def test_payload_order_does_not_matter(self):
        payloads = [
            ValuePayload("2023-01-01", "10"),
            DevicePayload("sensorA"),
            ValuePayload("2023-01-02", "20"),
        ]
        shuffled = list(payloads)
        random.Random(7).shuffle(shuffled)

        assert sorted(join_reduce(1, payloads), key=repr) == sorted(join_reduce(1, shuffled), key=repr)

    def test_registry_only_id_emits_nothing(self):
        assert list(join_reduce(5, [DevicePayload("sensorA")])) == []

    def test_values_only_id_emits_nothing(self):
        assert list(join_reduce(5, [ValuePayload("2023-01-01", "1")])) == []

    def test_rejects_untagged_payload(self):
        with pytest.raises(TypeError):
            list(join_reduce(1, ["DEV,sensorA"]))
