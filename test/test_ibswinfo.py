# -------------------------------------------------------------------------------
# MIT License
#
# Copyright (c) 2026 The infiniband_exporter Authors. All Rights Reserved.
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
# -------------------------------------------------------------------------------

import math

import pytest
from prometheus_client import CollectorRegistry

from infiniband_exporter.collector_base import ExporterMetrics, Topology
from infiniband_exporter.collector_ibnetdiscover import parseIbnetdiscover
from infiniband_exporter.collector_ibswinfo import (
    IbswinfoCollector,
    SwitchHealthParseError,
    ibswinfoArgs,
    parseIbswinfo,
    parseUptime,
)


def psuById(health):
    return {psu.id: psu for psu in health.power_supplies}


def fanById(health):
    return {fan.id: fan for fan in health.fans}


class TestParseIbswinfo:
    def test_identity(self, read_fixture):
        health = parseIbswinfo(read_fixture("ibswinfo", "test1"))
        assert health.part_number == "MSB7790-ES2F"
        assert health.serial_number == "MT1943X00498"
        assert health.psid == "MT_1880110032"
        assert health.firmware_version == "11.2008.2102"
        assert health.uptime == 13862333

    def test_power_supplies(self, read_fixture):
        health = parseIbswinfo(read_fixture("ibswinfo", "test1"))
        psus = psuById(health)
        assert sorted(psus) == ["0", "1"]
        psu0 = psus["0"]
        assert (psu0.status, psu0.dc_power, psu0.fan_status, psu0.power_watts) == ("OK", "OK", "OK", 72)
        assert psus["1"].power_watts == 71

    def test_chassis(self, read_fixture):
        health = parseIbswinfo(read_fixture("ibswinfo", "test1"))
        assert health.temperature == 45
        # the chassis "fan status" row follows the fourth divider
        assert health.fan_status == "ERROR"
        assert [psu.fan_status for psu in health.power_supplies] == ["OK", "OK"]
        rpms = [fanById(health)[str(i)].rpm for i in range(1, 9)]
        assert rpms == [8493, 7349, 8441, 7270, 8337, 7156, 8441, 7232]

    def test_second_switch(self, read_fixture):
        health = parseIbswinfo(read_fixture("ibswinfo", "test2"))
        assert health.part_number == "MQM8790-HS2F"
        assert health.serial_number == "MT2152T10239"
        assert health.firmware_version == "27.2010.3118"
        assert health.psid == "MT_0000000063"
        assert health.uptime == 8301347
        assert [psu.power_watts for psu in health.power_supplies] == [154, 134]
        assert health.temperature == 53
        assert health.fan_status == "OK"
        assert len(health.fans) == 9
        assert fanById(health)["9"].rpm == 5906

    def test_failed_psu(self, read_fixture):
        health = parseIbswinfo(read_fixture("ibswinfo", "test3"))
        assert health.serial_number == "MT2148T25782"
        assert health.firmware_version == "27.2010.4102"
        assert health.uptime == 75850
        psus = psuById(health)
        assert psus["0"].power_watts == 287
        psu1 = psus["1"]
        assert (psu1.status, psu1.dc_power, psu1.fan_status) == ("OK", "ERROR", "ERROR")
        assert math.isnan(psu1.power_watts)
        assert health.temperature == 47
        assert health.fan_status == "OK"
        assert len(health.fans) == 9
        assert fanById(health)["1"].rpm == 5959

    def test_empty_fan_is_unset(self, read_fixture):
        health = parseIbswinfo(read_fixture("ibswinfo", "test3"))
        assert math.isnan(fanById(health)["9"].rpm)

    @pytest.mark.parametrize("fixture", ["test-err1", "test-err2", "test-err3"])
    def test_fatal_errors(self, read_fixture, fixture):
        with pytest.raises(SwitchHealthParseError):
            parseIbswinfo(read_fixture("ibswinfo", fixture))

    def test_divider_position(self):
        text = "\n".join(
            [
                "PSU0 status        | OK",
                "     fan status    | ERROR",
                "-----",
                "-----",
                "-----",
                "fan status         | OK",
                "-----",
                "fan status         | FAILED",
            ]
        )
        health = parseIbswinfo(text)
        # third divider: still the power supply
        assert psuById(health)["0"].fan_status == "OK"
        assert health.fan_status == "FAILED"

    def test_missing_temperature(self):
        health = parseIbswinfo("part number | MSB7790-ES2F\n")
        assert math.isnan(health.temperature)
        assert health.power_supplies == []
        assert health.fans == []

    def test_bad_uptime_is_skipped(self):
        health = parseIbswinfo("uptime (d-h:m:s) | xd-10:38:53\ntemperature (C) | 40\n")
        assert health.uptime == 0
        assert health.temperature == 40


class TestUptime:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("160d-10:38:53", 13862333),
            ("0d-00:00:01", 1),
            ("21:04:10", 75850),
            ("00:00:00", 0),
        ],
    )
    def test_parse(self, value, expected):
        assert parseUptime(value) == expected

    @pytest.mark.parametrize("value", ["xd-10:38:53", "1d-99:00:00", "garbage", "1d-2d-10:00:00"])
    def test_invalid(self, value):
        assert parseUptime(value) is None


class TestIbswinfoCollector:
    @pytest.fixture
    def collector(self, fixture_runner, read_fixture, build_config):
        registry = CollectorRegistry()
        topology = Topology()
        topology.update(*parseIbnetdiscover(read_fixture("ibnetdiscover", "test")))
        config = build_config(enable_ibswinfo=True, ibswinfo__max_concurrent=2)
        collector = IbswinfoCollector(config, fixture_runner, topology, ExporterMetrics(registry))
        collector.registerMetrics()
        return collector, registry

    def test_args(self):
        assert ibswinfoArgs("1719") == ["-d", "lid-1719"]

    def test_metrics(self, collector, fixture_runner):
        collector, registry = collector
        collector.updateMetrics()

        guid = "0x7cfe9003009ce5b0"
        assert sorted(fixture_runner.toolCalls("ibswinfo")) == [["-d", "lid-1719"], ["-d", "lid-2052"]]
        info = {
            "guid": guid,
            "firmware_version": "11.2008.2102",
            "psid": "MT_1880110032",
            "part_number": "MSB7790-ES2F",
            "serial_number": "MT1943X00498",
            "switch": "ib-i1l1s01",
        }
        assert registry.get_sample_value("infiniband_switch_hardware_info", info) == 1
        assert registry.get_sample_value("infiniband_switch_uptime_seconds", {"guid": guid}) == 13862333
        assert registry.get_sample_value("infiniband_switch_temperature_celsius", {"guid": guid}) == 45
        assert registry.get_sample_value("infiniband_switch_fan_status_info", {"guid": guid, "status": "ERROR"}) == 1
        assert registry.get_sample_value("infiniband_switch_fan_rpm", {"guid": guid, "fan": "1"}) == 8493
        assert registry.get_sample_value("infiniband_switch_power_supply_watts", {"guid": guid, "psu": "0"}) == 72
        psu = {"guid": guid, "psu": "1", "status": "OK"}
        assert registry.get_sample_value("infiniband_switch_power_supply_status_info", psu) == 1
        assert registry.get_sample_value("infiniband_switch_power_supply_dc_power_status_info", psu) == 1
        assert registry.get_sample_value("infiniband_switch_power_supply_fan_status_info", psu) == 1
        call = {"guid": guid, "collector": "ibswinfo"}
        assert registry.get_sample_value("infiniband_switch_collect_error", call) == 0
        assert registry.get_sample_value("infiniband_switch_collect_timeout", call) == 0
        assert registry.get_sample_value("infiniband_switch_collect_duration_seconds", call) >= 0
        assert registry.get_sample_value("infiniband_exporter_collect_errors", {"collector": "ibswinfo"}) == 0

    def test_failed_psu_metrics(self, collector, fixture_runner):
        collector, registry = collector
        fixture_runner.ibswinfo["2052"] = "test3"
        collector.updateMetrics()

        guid = "0x506b4b03005c2740"
        dc = {"guid": guid, "psu": "1", "status": "ERROR"}
        assert registry.get_sample_value("infiniband_switch_power_supply_dc_power_status_info", dc) == 1
        assert registry.get_sample_value("infiniband_switch_power_supply_watts", {"guid": guid, "psu": "1"}) is None
        assert registry.get_sample_value("infiniband_switch_fan_rpm", {"guid": guid, "fan": "9"}) is None
        assert registry.get_sample_value("infiniband_switch_fan_rpm", {"guid": guid, "fan": "8"}) == 5296

    def test_parse_error(self, collector, fixture_runner):
        collector, registry = collector
        fixture_runner.ibswinfo["2052"] = "test-err1"
        records, errors, timeouts = collector.collect(collector._IbswinfoCollector__topology.switches)
        assert [r.device.guid for r in records] == ["0x7cfe9003009ce5b0"]
        assert (errors, timeouts) == (1, 0)

        collector.updateMetrics()
        guid = "0x506b4b03005c2740"
        labels = {"guid": guid, "collector": "ibswinfo"}
        assert registry.get_sample_value("infiniband_switch_collect_error", labels) == 1
        assert registry.get_sample_value("infiniband_switch_uptime_seconds", {"guid": guid}) is None
        assert registry.get_sample_value("infiniband_exporter_collect_errors", {"collector": "ibswinfo"}) == 1

    def test_timeouts(self, collector, fixture_runner):
        collector, registry = collector
        fixture_runner.timeoutTools.add("ibswinfo")
        collector.updateMetrics()

        for guid in ["0x506b4b03005c2740", "0x7cfe9003009ce5b0"]:
            call = {"guid": guid, "collector": "ibswinfo"}
            assert registry.get_sample_value("infiniband_switch_collect_timeout", call) == 1
            assert registry.get_sample_value("infiniband_switch_collect_error", call) == 0
        assert registry.get_sample_value("infiniband_exporter_collect_timeouts", {"collector": "ibswinfo"}) == 2
        assert registry.get_sample_value("infiniband_exporter_collect_errors", {"collector": "ibswinfo"}) == 0
