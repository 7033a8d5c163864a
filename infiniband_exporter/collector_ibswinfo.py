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

"""Switch hardware health via ibswinfo

Queries every discovered switch with `ibswinfo -d lid-<LID>` and exports
identity, uptime, power supply, temperature and fan data. The tool prints
"key | value" rows separated by dashed divider lines:

  PSU0 status          | OK
       DC power        | OK
       fan status      | OK
       power (W)       | 72
  -------------------------------------------------
  temperature (C)      | 45
  -------------------------------------------------
  fan status           | ERROR
  fan#1 (rpm)          | 8493

Power supply rows and the chassis fan row share the "fan status" key; which
one a row belongs to depends on how many dividers precede it.
"""

import configparser
import datetime
import logging
import re
import threading
import time

from infiniband_exporter import utils
from infiniband_exporter.collector_base import Collector, boundedCollect, registerGauge
from infiniband_exporter.models import SwitchFan, SwitchHealth, SwitchPowerSupply, isSet

_PSU_RE = re.compile(r"PSU([0-9]) status")
_FAN_RE = re.compile(r"fan#([0-9]+)")

# Rows after this many dividers describe the chassis, not a power supply
CHASSIS_DIVIDERS = 4

_IDENTITY = {
    "part number": "part_number",
    "serial number": "serial_number",
    "PSID": "psid",
    "firmware version": "firmware_version",
}


class SwitchHealthParseError(ValueError):
    pass


def parseUptime(value):
    """Convert "Nd-HH:MM:SS" or "HH:MM:SS" to seconds; None if malformed."""
    days = 0.0
    parts = value.split("-")
    if len(parts) == 2:
        try:
            days = float(parts[0].replace("d", "", 1))
        except ValueError:
            logging.error("Unable to parse uptime duration: %s" % value)
            return None
        clock = parts[1]
    else:
        clock = value

    try:
        t = datetime.datetime.strptime(clock, "%H:%M:%S")
    except ValueError:
        logging.error("Unable to parse uptime duration: %s" % value)
        return None
    return days * 86400 + t.hour * 3600 + t.minute * 60 + t.second


def _parseNumber(key, value):
    try:
        return float(value)
    except ValueError:
        logging.error("Unable to parse %s: %r" % (key, value))
        raise SwitchHealthParseError("Unable to parse %s: %r" % (key, value))


def parseIbswinfo(text):
    """Parse ibswinfo output into a SwitchHealth record.

    Lines are processed strictly in order: the divider count and the most
    recent "PSU<N> status" row decide where DC power, fan status and power
    rows are attached.

    Raises:
        SwitchHealthParseError: power, temperature or a non-empty fan RPM
            value is not a number.
    """
    health = SwitchHealth()
    psus = {}
    psuId = None
    dividers = 0

    for line in text.splitlines():
        if line.startswith("-----"):
            dividers += 1
        items = line.split("|")
        if len(items) != 2:
            continue
        key = items[0].strip()
        value = items[1].strip()

        if key in _IDENTITY:
            setattr(health, _IDENTITY[key], value)
        if key.startswith("uptime"):
            uptime = parseUptime(value)
            if uptime is not None:
                health.uptime = uptime
            continue

        match = _PSU_RE.search(key)
        if match:
            psuId = match.group(1)
            if dividers < CHASSIS_DIVIDERS:
                psus[psuId] = SwitchPowerSupply(id=psuId, status=value)
            continue

        psu = None
        if psuId is not None and dividers < CHASSIS_DIVIDERS:
            psu = psus.setdefault(psuId, SwitchPowerSupply(id=psuId))

        if key == "DC power" and psu is not None:
            psu.dc_power = value
        elif key == "fan status":
            if dividers >= CHASSIS_DIVIDERS:
                health.fan_status = value
            elif psu is not None:
                psu.fan_status = value
        elif key == "power (W)":
            watts = _parseNumber(key, value)
            if psu is not None:
                psu.power_watts = watts
        elif key == "temperature (C)":
            health.temperature = _parseNumber(key, value)

        match = _FAN_RE.search(key)
        if match:
            fan = SwitchFan(id=match.group(1))
            # empty value: fan slot not populated
            if value != "":
                fan.rpm = _parseNumber(key, value)
            health.fans.append(fan)

    health.power_supplies = list(psus.values())
    return health


def ibswinfoArgs(lid):
    return ["-d", "lid-%s" % lid]


class IbswinfoCollector(Collector):
    name = "ibswinfo"
    requiresTopology = True

    def __init__(self, config: configparser.ConfigParser, runner, topology, exporter):
        """Initialize the switch health collector.

        Args:
            config (configparser.ConfigParser): Cached copy of runtime configuration.
            runner (utils.CommandRunner): Executes fabric diagnostic tools.
            topology (Topology): Shared fabric snapshot.
            exporter (ExporterMetrics): Exporter self-metrics and registry.
        """
        logging.debug("Initializing ibswinfo data collector")

        self.__prefix = "infiniband_switch_"
        self.__runner = runner
        self.__topology = topology
        self.__exporter = exporter

        section = utils.getSection(config, "infiniband_exporter.ibswinfo")
        self.__path = utils.removeQuotes(section.get("path", "ibswinfo"))
        self.__timeout = utils.getTimeout(section, 10)
        self.__maxConcurrent = utils.getMaxConcurrent(section)

        # per-switch call outcome for the current pass, keyed by GUID
        self.__calls = {}
        self.__callsLock = threading.Lock()

    def registerMetrics(self):
        """Register metrics of interest"""
        registry = self.__exporter.registry
        prefix = self.__prefix

        self.__duration = registerGauge(
            registry, prefix + "collect_duration_seconds", "Duration of collection", ["guid", "collector"]
        )
        self.__error = registerGauge(
            registry, prefix + "collect_error", "Indicates if collect error", ["guid", "collector"]
        )
        self.__timeoutMetric = registerGauge(
            registry, prefix + "collect_timeout", "Indicates if collect timeout", ["guid", "collector"]
        )
        self.__hardwareInfo = registerGauge(
            registry,
            prefix + "hardware_info",
            "Infiniband switch hardware info",
            ["guid", "firmware_version", "psid", "part_number", "serial_number", "switch"],
        )
        self.__uptime = registerGauge(
            registry, prefix + "uptime_seconds", "Infiniband switch uptime in seconds", ["guid"]
        )
        self.__psuStatus = registerGauge(
            registry,
            prefix + "power_supply_status_info",
            "Infiniband switch power supply status",
            ["guid", "psu", "status"],
        )
        self.__psuDCPower = registerGauge(
            registry,
            prefix + "power_supply_dc_power_status_info",
            "Infiniband switch power supply DC power status",
            ["guid", "psu", "status"],
        )
        self.__psuFanStatus = registerGauge(
            registry,
            prefix + "power_supply_fan_status_info",
            "Infiniband switch power supply fan status",
            ["guid", "psu", "status"],
        )
        self.__psuWatts = registerGauge(
            registry, prefix + "power_supply_watts", "Infiniband switch power supply watts", ["guid", "psu"]
        )
        self.__temperature = registerGauge(
            registry, prefix + "temperature_celsius", "Infiniband switch temperature celsius", ["guid"]
        )
        self.__fanStatus = registerGauge(
            registry, prefix + "fan_status_info", "Infiniband switch fan status", ["guid", "status"]
        )
        self.__fanRPM = registerGauge(registry, prefix + "fan_rpm", "Infiniband switch fan RPM", ["guid", "fan"])

        self.__gauges = [
            self.__duration,
            self.__error,
            self.__timeoutMetric,
            self.__hardwareInfo,
            self.__uptime,
            self.__psuStatus,
            self.__psuDCPower,
            self.__psuFanStatus,
            self.__psuWatts,
            self.__temperature,
            self.__fanStatus,
            self.__fanRPM,
        ]

    def __recordCall(self, health):
        with self.__callsLock:
            self.__calls[health.device.guid] = health

    def __query(self, device, collection):
        logging.debug("Run ibswinfo (lid=%s)" % device.lid)
        start = time.perf_counter()
        try:
            out = self.__runner.run(self.__path, ibswinfoArgs(device.lid), self.__timeout)
        except utils.CommandTimeoutError:
            self.__recordCall(SwitchHealth(device=device, duration=time.perf_counter() - start, timeout=1.0))
            logging.error("Timeout collecting ibswinfo data (guid=%s, lid=%s)" % (device.guid, device.lid))
            collection.addTimeout()
            return
        except utils.CommandError as e:
            self.__recordCall(SwitchHealth(device=device, duration=time.perf_counter() - start, error=1.0))
            logging.error("Error collecting ibswinfo data (guid=%s, lid=%s): %s" % (device.guid, device.lid, e))
            collection.addErrors(1)
            return
        duration = time.perf_counter() - start

        try:
            health = parseIbswinfo(out)
        except SwitchHealthParseError as e:
            self.__recordCall(SwitchHealth(device=device, duration=duration, error=1.0))
            logging.error("Error parsing ibswinfo output (guid=%s, lid=%s): %s" % (device.guid, device.lid, e))
            collection.addErrors(1)
            return

        health.device = device
        health.duration = duration
        self.__recordCall(health)
        collection.addRecords([health])

    def collect(self, devices):
        """Query every switch with bounded concurrency.

        Returns:
            tuple: (list of SwitchHealth, errors, timeouts)
        """
        with self.__callsLock:
            self.__calls = {}
        logging.debug("Collecting ibswinfo on %d devices" % len(devices))
        return boundedCollect(devices, self.__query, self.__maxConcurrent)

    def resetMetrics(self):
        for gauge in self.__gauges:
            gauge.clear()

    def updateMetrics(self):
        """Update registered metrics of interest"""
        self.resetMetrics()

        name = self.__exporter.collectorName(self.name)
        records, errors, timeouts = self.collect(self.__topology.switches)

        for guid, call in self.__calls.items():
            self.__duration.labels(guid=guid, collector=name).set(call.duration)
            self.__error.labels(guid=guid, collector=name).set(call.error)
            self.__timeoutMetric.labels(guid=guid, collector=name).set(call.timeout)

        for health in records:
            guid = health.device.guid
            self.__hardwareInfo.labels(
                guid=guid,
                firmware_version=health.firmware_version,
                psid=health.psid,
                part_number=health.part_number,
                serial_number=health.serial_number,
                switch=health.device.name,
            ).set(1)
            self.__uptime.labels(guid=guid).set(health.uptime)
            for psu in health.power_supplies:
                if psu.status:
                    self.__psuStatus.labels(guid=guid, psu=psu.id, status=psu.status).set(1)
                if psu.dc_power:
                    self.__psuDCPower.labels(guid=guid, psu=psu.id, status=psu.dc_power).set(1)
                if psu.fan_status:
                    self.__psuFanStatus.labels(guid=guid, psu=psu.id, status=psu.fan_status).set(1)
                if isSet(psu.power_watts):
                    self.__psuWatts.labels(guid=guid, psu=psu.id).set(psu.power_watts)
            if isSet(health.temperature):
                self.__temperature.labels(guid=guid).set(health.temperature)
            if health.fan_status:
                self.__fanStatus.labels(guid=guid, status=health.fan_status).set(1)
            for fan in health.fans:
                if isSet(fan.rpm):
                    self.__fanRPM.labels(guid=guid, fan=fan.id).set(fan.rpm)

        self.__exporter.record(name, errors, timeouts)
