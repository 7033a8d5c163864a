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

"""Switch port counters

Implements per-port perfquery counters for every switch in the discovered
fabric, plus link rate, identity and uplink info metrics. Examples:

infiniband_switch_port_transmit_data_bytes_total{guid="0x7cfe9003009ce5b0",port="1"} 3.6298026860928e+13
infiniband_switch_info{guid="0x7cfe9003009ce5b0",lid="1719",switch="ib-i1l1s01"} 1.0
"""

import configparser
import logging

from infiniband_exporter import utils
from infiniband_exporter.collector_base import Collector, registerGauge
from infiniband_exporter.perfquery import PortCounterMetrics, collectPortCounters


class SwitchCollector(Collector):
    name = "switch"
    requiresTopology = True

    def __init__(self, config: configparser.ConfigParser, runner, topology, exporter):
        """Initialize the switch port counter collector.

        Args:
            config (configparser.ConfigParser): Cached copy of runtime configuration.
            runner (utils.CommandRunner): Executes fabric diagnostic tools.
            topology (Topology): Shared fabric snapshot.
            exporter (ExporterMetrics): Exporter self-metrics and registry.
        """
        logging.debug("Initializing switch data collector")

        self.__prefix = "infiniband_switch_"
        self.__runner = runner
        self.__topology = topology
        self.__exporter = exporter

        perfquery = utils.getSection(config, "infiniband_exporter.perfquery")
        self.__path = utils.removeQuotes(perfquery.get("path", "perfquery"))
        self.__timeout = utils.getTimeout(perfquery, 5)
        self.__maxConcurrent = utils.getMaxConcurrent(perfquery)

        section = utils.getSection(config, "infiniband_exporter.switch")
        self.__rcvErrDetails = section.getboolean("rcv_err_details", False)

    def registerMetrics(self):
        """Register metrics of interest"""
        registry = self.__exporter.registry
        self.__counters = PortCounterMetrics(registry, "switch", "Infiniband switch")
        self.__rate = registerGauge(
            registry, self.__prefix + "rate_bytes_per_second", "Infiniband switch rate", ["guid"]
        )
        self.__rawRate = registerGauge(
            registry, self.__prefix + "raw_rate_bytes_per_second", "Infiniband switch raw rate", ["guid"]
        )
        self.__info = registerGauge(
            registry, self.__prefix + "info", "Infiniband switch information", ["guid", "switch", "lid"]
        )
        self.__uplink = registerGauge(
            registry,
            self.__prefix + "uplink_info",
            "Infiniband switch uplink information",
            ["guid", "port", "switch", "uplink", "uplink_guid", "uplink_type", "uplink_port", "uplink_lid"],
        )

    def resetMetrics(self):
        self.__counters.clear()
        for gauge in (self.__rate, self.__rawRate, self.__info, self.__uplink):
            gauge.clear()

    def updateMetrics(self):
        """Update registered metrics of interest"""
        switches = self.__topology.switches
        self.resetMetrics()

        records, errors, timeouts = collectPortCounters(
            self.__runner,
            self.__path,
            self.__timeout,
            switches,
            self.__maxConcurrent,
            rcvErrDetails=self.__rcvErrDetails,
        )
        self.__counters.update(records)

        for device in switches:
            self.__rate.labels(guid=device.guid).set(device.rate)
            self.__rawRate.labels(guid=device.guid).set(device.raw_rate)
            self.__info.labels(guid=device.guid, switch=device.name, lid=device.lid).set(1)
            for port in device.ports():
                uplink = device.uplinks[port]
                self.__uplink.labels(
                    guid=device.guid,
                    port=port,
                    switch=device.name,
                    uplink=uplink.name,
                    uplink_guid=uplink.guid,
                    uplink_type=uplink.type,
                    uplink_port=uplink.port_number,
                    uplink_lid=uplink.lid,
                ).set(1)

        self.__exporter.record(self.__exporter.collectorName(self.name), errors, timeouts)
