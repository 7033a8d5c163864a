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

"""HCA port counters

Implements per-port perfquery counters for host channel adapters found in the
fabric. Rate, identity and uplink metrics are exported together with the base
counters; receive error details can be enabled on their own.

infiniband_hca_info{guid="0x7cfe9003003b4bde",hca="o0001",lid="134",port_name="o0001 HCA-1"} 1.0
"""

import configparser
import logging

from infiniband_exporter import utils
from infiniband_exporter.collector_base import Collector, registerGauge
from infiniband_exporter.perfquery import PortCounterMetrics, collectPortCounters


class HCACollector(Collector):
    name = "hca"
    requiresTopology = True

    def __init__(self, config: configparser.ConfigParser, runner, topology, exporter):
        """Initialize the HCA port counter collector.

        Args:
            config (configparser.ConfigParser): Cached copy of runtime configuration.
            runner (utils.CommandRunner): Executes fabric diagnostic tools.
            topology (Topology): Shared fabric snapshot.
            exporter (ExporterMetrics): Exporter self-metrics and registry.
        """
        logging.debug("Initializing HCA data collector")

        self.__prefix = "infiniband_hca_"
        self.__runner = runner
        self.__topology = topology
        self.__exporter = exporter

        perfquery = utils.getSection(config, "infiniband_exporter.perfquery")
        self.__path = utils.removeQuotes(perfquery.get("path", "perfquery"))
        self.__timeout = utils.getTimeout(perfquery, 5)
        self.__maxConcurrent = utils.getMaxConcurrent(perfquery)

        section = utils.getSection(config, "infiniband_exporter.hca")
        self.__baseMetrics = section.getboolean("base_metrics", True)
        self.__rcvErrDetails = section.getboolean("rcv_err_details", False)

    def registerMetrics(self):
        """Register metrics of interest"""
        registry = self.__exporter.registry
        self.__counters = PortCounterMetrics(registry, "hca", "Infiniband HCA")
        self.__rate = registerGauge(registry, self.__prefix + "rate_bytes_per_second", "Infiniband HCA rate", ["guid"])
        self.__rawRate = registerGauge(
            registry, self.__prefix + "raw_rate_bytes_per_second", "Infiniband HCA raw rate", ["guid"]
        )
        self.__info = registerGauge(
            registry, self.__prefix + "info", "Infiniband HCA information", ["guid", "hca", "port_name", "lid"]
        )
        self.__uplink = registerGauge(
            registry,
            self.__prefix + "uplink_info",
            "Infiniband HCA uplink information",
            [
                "guid",
                "port",
                "hca",
                "uplink",
                "uplink_guid",
                "uplink_type",
                "uplink_port",
                "uplink_port_name",
                "uplink_lid",
            ],
        )

    def resetMetrics(self):
        self.__counters.clear()
        for gauge in (self.__rate, self.__rawRate, self.__info, self.__uplink):
            gauge.clear()

    def updateMetrics(self):
        """Update registered metrics of interest"""
        hcas = self.__topology.hcas
        self.resetMetrics()

        records, errors, timeouts = collectPortCounters(
            self.__runner,
            self.__path,
            self.__timeout,
            hcas,
            self.__maxConcurrent,
            baseMetrics=self.__baseMetrics,
            rcvErrDetails=self.__rcvErrDetails,
        )
        self.__counters.update(records)

        if self.__baseMetrics:
            for device in hcas:
                self.__rate.labels(guid=device.guid).set(device.rate)
                self.__rawRate.labels(guid=device.guid).set(device.raw_rate)
                self.__info.labels(guid=device.guid, hca=device.name, port_name=device.port_name, lid=device.lid).set(1)
                for port in device.ports():
                    uplink = device.uplinks[port]
                    self.__uplink.labels(
                        guid=device.guid,
                        port=port,
                        hca=device.name,
                        uplink=uplink.name,
                        uplink_guid=uplink.guid,
                        uplink_type=uplink.type,
                        uplink_port=uplink.port_number,
                        uplink_port_name=uplink.port_name,
                        uplink_lid=uplink.lid,
                    ).set(1)

        self.__exporter.record(self.__exporter.collectorName(self.name), errors, timeouts)
