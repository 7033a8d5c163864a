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

# Prometheus exporter for InfiniBand fabrics.
#
# Supporting monitor class that loads the configured collectors, owns the
# metrics registry and runs one collection cycle per scrape.
# --

import configparser
import importlib
import logging
import os
import platform
import sys
import threading
import time

from prometheus_client import (
    CollectorRegistry,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

from infiniband_exporter import utils
from infiniband_exporter.collector_base import ExporterMetrics, Topology
from infiniband_exporter.collector_definitions import COLLECTORS


class Monitor:
    def __init__(self, config: configparser.ConfigParser, logFile=None, runonce=False, runner=None):

        self.config = config  # cache runtime configuration

        logLevel = os.environ.get("INFINIBAND_EXPORTER_LOG_LEVEL", "INFO").upper()
        if logFile:
            hostname = platform.node().split(".", 1)[0]
            logging.basicConfig(
                format=f"[{hostname}: %(asctime)s] %(message)s",
                level=logLevel,
                filename=logFile,
                datefmt="%H:%M:%S",
            )
        else:
            logging.basicConfig(format="%(message)s", level=logLevel, stream=sys.stdout)

        settings = utils.getSection(self.config, "infiniband_exporter")
        self.__runonce = runonce
        self.__enableExporterMetrics = settings.getboolean("enable_exporter_metrics", True)

        # tool invocations are injectable for testing
        if runner is None:
            runner = utils.CommandRunner(sudo=settings.getboolean("sudo", False))
        self.__runner = runner

        self.__registry = CollectorRegistry()
        self.__topology = Topology()
        self.__collectors = []
        self.__exporter = None

        # serialize scrapes; collectors share the topology snapshot
        self.__lock = threading.Lock()

        logging.debug("Completed monitor initialization")

    @property
    def registry(self):
        return self.__registry

    @property
    def topology(self):
        return self.__topology

    @property
    def collectors(self):
        return self.__collectors

    def initMetrics(self):
        if self.__enableExporterMetrics and not self.__runonce:
            ProcessCollector(registry=self.__registry)
            PlatformCollector(registry=self.__registry)
            GCCollector(registry=self.__registry)

        logging.info("\nRegistering exporter metrics (runonce = %s)" % self.__runonce)
        self.__exporter = ExporterMetrics(self.__registry, runonce=self.__runonce)

        settings = self.config["infiniband_exporter"]
        for collector in COLLECTORS:
            runtime_option = collector["runtime_option"]
            default = collector["enabled_by_default"]
            if runtime_option:
                try:
                    enabled = settings.getboolean(runtime_option, default)
                except ValueError:
                    logging.error("[ERROR]: invalid value for %s in runtime config" % runtime_option)
                    sys.exit(4)
            else:
                enabled = default
            if enabled:
                module = importlib.import_module(collector["file"])
                cls = getattr(module, collector["className"])
                self.__collectors.append(
                    cls(config=self.config, runner=self.__runner, topology=self.__topology, exporter=self.__exporter)
                )

        # Initialize all metrics
        prefix_filter = utils.PrefixFilter("   ")
        for collector in self.__collectors:
            logging.info("\nRegistering metrics for collector: %s" % collector.__class__.__name__)
            logging.getLogger().addFilter(prefix_filter)
            collector.registerMetrics()
            logging.getLogger().removeFilter(prefix_filter)

    def updateAllMetrics(self):
        """Run one collection cycle and return the exposition text."""
        with self.__lock:
            for collector in self.__collectors:
                if collector.requiresTopology and not self.__topology.available:
                    logging.debug("Skipping %s collector: fabric topology unavailable" % collector.name)
                    collector.resetMetrics()
                    continue
                start_time = time.perf_counter()
                collector.updateMetrics()
                elapsed_time = time.perf_counter() - start_time
                self.__exporter.recordDuration(self.__exporter.collectorName(collector.name), elapsed_time)

            return generate_latest(self.__registry)
