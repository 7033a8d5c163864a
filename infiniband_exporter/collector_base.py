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

"""Collector base class and shared collection plumbing.

Collectors register prometheus gauges once and refresh them on every scrape.
Per-device tool invocations fan out over worker threads with a bounded number
of invocations in flight; results and error/timeout tallies are accumulated
under a lock.
"""

import logging
import threading
from abc import ABC, abstractmethod

from prometheus_client import Gauge


class Collector(ABC):
    # Collectors that need a discovered fabric are skipped when discovery fails
    requiresTopology = False

    # Name used in the "collector" label of exporter self-metrics
    name = None

    @abstractmethod
    def registerMetrics(self):
        """Defines desired metrics to monitor with Prometheus. Called once during initialization."""
        pass

    @abstractmethod
    def updateMetrics(self):
        """Updates defined metrics with latest values. Called at every polling interval."""
        pass

    def resetMetrics(self):
        """Drops all exported samples. Called when a collection cycle skips this collector."""
        pass


class Topology:
    """Most recent fabric snapshot, shared between the discovery collector and its consumers."""

    def __init__(self):
        self.__lock = threading.Lock()
        self.__switches = []
        self.__hcas = []
        self.__available = False

    def update(self, switches, hcas):
        with self.__lock:
            self.__switches = list(switches)
            self.__hcas = list(hcas)
            self.__available = True

    def invalidate(self):
        with self.__lock:
            self.__switches = []
            self.__hcas = []
            self.__available = False

    @property
    def available(self):
        return self.__available

    @property
    def switches(self):
        return self.__switches

    @property
    def hcas(self):
        return self.__hcas


class CollectionPass:
    """Shared state for one bounded fan-out over a set of devices.

    Workers report through addRecords(), addErrors() and addTimeout(); all
    three are safe to call from any worker thread.
    """

    def __init__(self, maxConcurrent):
        if maxConcurrent < 1:
            raise ValueError("maxConcurrent must be at least 1 (got %s)" % maxConcurrent)
        self.__slots = threading.BoundedSemaphore(maxConcurrent)
        self.__lock = threading.Lock()
        self.records = []
        self.errors = 0.0
        self.timeouts = 0.0

    def addRecords(self, records):
        with self.__lock:
            self.records.extend(records)

    def addErrors(self, count=1):
        if count:
            with self.__lock:
                self.errors += count

    def addTimeout(self):
        with self.__lock:
            self.timeouts += 1

    def run(self, items, worker):
        """Invoke worker(item, self) for every item and wait for all of them.

        A slot is acquired before each worker thread starts and released when
        it finishes, so at most maxConcurrent workers are running at once.
        """
        threads = []
        for item in items:
            self.__slots.acquire()
            thread = threading.Thread(target=self.__runWorker, args=(worker, item), daemon=True)
            try:
                thread.start()
            except RuntimeError:
                self.__slots.release()
                raise
            threads.append(thread)

        for thread in threads:
            thread.join()

        return self.records, self.errors, self.timeouts

    def __runWorker(self, worker, item):
        try:
            worker(item, self)
        except Exception:
            logging.exception("Unexpected failure collecting from %s" % getattr(item, "guid", item))
            self.addErrors(1)
        finally:
            self.__slots.release()


def boundedCollect(items, worker, maxConcurrent):
    """Fan out worker over items with at most maxConcurrent in flight.

    Returns:
        tuple: (records, errors, timeouts) accumulated by the workers.
    """
    return CollectionPass(maxConcurrent).run(items, worker)


def registerGauge(registry, name, description, labels):
    gauge = Gauge(name, description, labelnames=labels, registry=registry)
    logging.info("--> [registered] %s -> %s (gauge)" % (name, description))
    return gauge


class ExporterMetrics:
    """Per-collector error, timeout and duration gauges.

    In run-once mode collector names carry a "-runonce" suffix and the time of
    the last execution is exported as well.
    """

    def __init__(self, registry, runonce=False):
        self.__registry = registry
        self.__runonce = runonce
        labels = ["collector"]
        self.__errors = registerGauge(
            registry, "infiniband_exporter_collect_errors", "Number of errors that occurred during collection", labels
        )
        self.__timeouts = registerGauge(
            registry,
            "infiniband_exporter_collect_timeouts",
            "Number of timeouts that occurred during collection",
            labels,
        )
        self.__duration = registerGauge(
            registry, "infiniband_exporter_collector_duration_seconds", "Collector time duration.", labels
        )
        self.__lastExecution = None
        if runonce:
            self.__lastExecution = registerGauge(
                registry, "infiniband_exporter_last_execution", "Last execution time of exporter", labels
            )

    @property
    def registry(self):
        return self.__registry

    @property
    def runonce(self):
        return self.__runonce

    def collectorName(self, name):
        if self.__runonce:
            return name + "-runonce"
        return name

    def record(self, collector, errors, timeouts):
        self.__errors.labels(collector=collector).set(errors)
        self.__timeouts.labels(collector=collector).set(timeouts)

    def recordDuration(self, collector, seconds):
        self.__duration.labels(collector=collector).set(seconds)
        if self.__lastExecution is not None:
            self.__lastExecution.labels(collector=collector).set_to_current_time()
