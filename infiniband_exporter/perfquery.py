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

"""Port counters via perfquery

Shared by the switch and HCA collectors. perfquery prints one
"Field:....value" line per counter, grouped into blocks that each start with
a PortSelect line. Blocks for the same port may appear more than once in one
output and are merged into a single record.
"""

import logging
from dataclasses import fields

from infiniband_exporter.collector_base import boundedCollect, registerGauge
from infiniband_exporter.models import PerfQueryCounters, isSet
from infiniband_exporter.utils import CommandError, CommandTimeoutError

# perfquery field -> (metric suffix, help text)
COUNTERS = {
    "PortXmitData": ("port_transmit_data_bytes_total", "port PortXmitData"),
    "PortRcvData": ("port_receive_data_bytes_total", "port PortRcvData"),
    "PortXmitPkts": ("port_transmit_packets_total", "port PortXmitPkts"),
    "PortRcvPkts": ("port_receive_packets_total", "port PortRcvPkts"),
    "PortUnicastXmitPkts": ("port_unicast_transmit_packets_total", "port PortUnicastXmitPkts"),
    "PortUnicastRcvPkts": ("port_unicast_receive_packets_total", "port PortUnicastRcvPkts"),
    "PortMulticastXmitPkts": ("port_multicast_transmit_packets_total", "port PortMulticastXmitPkts"),
    "PortMulticastRcvPkts": ("port_multicast_receive_packets_total", "port PortMulticastRcvPkts"),
    "SymbolErrorCounter": ("port_symbol_error_total", "port SymbolErrorCounter"),
    "LinkErrorRecoveryCounter": ("port_link_error_recovery_total", "port LinkErrorRecoveryCounter"),
    "LinkDownedCounter": ("port_link_downed_total", "port LinkDownedCounter"),
    "PortRcvErrors": ("port_receive_errors_total", "port PortRcvErrors"),
    "PortRcvRemotePhysicalErrors": ("port_receive_remote_physical_errors_total", "port PortRcvRemotePhysicalErrors"),
    "PortRcvSwitchRelayErrors": ("port_receive_switch_relay_errors_total", "port PortRcvSwitchRelayErrors"),
    "PortXmitDiscards": ("port_transmit_discards_total", "port PortXmitDiscards"),
    "PortXmitConstraintErrors": ("port_transmit_constraint_errors_total", "port PortXmitConstraintErrors"),
    "PortRcvConstraintErrors": ("port_receive_constraint_errors_total", "port PortRcvConstraintErrors"),
    "LocalLinkIntegrityErrors": ("port_local_link_integrity_errors_total", "port LocalLinkIntegrityErrors"),
    "ExcessiveBufferOverrunErrors": ("port_excessive_buffer_overrun_errors_total", "port ExcessiveBufferOverrunErrors"),
    "VL15Dropped": ("port_vl15_dropped_total", "port VL15Dropped"),
    "PortXmitWait": ("port_transmit_wait_total", "port PortXmitWait"),
    "QP1Dropped": ("port_qp1_dropped_total", "port QP1Dropped"),
    "PortLocalPhysicalErrors": ("port_local_physical_errors_total", "port PortLocalPhysicalErrors"),
    "PortMalformedPktErrors": ("port_malformed_packet_errors_total", "port PortMalformedPktErrors"),
    "PortBufferOverrunErrors": ("port_buffer_overrun_errors_total", "port PortBufferOverrunErrors"),
    "PortDLIDMappingErrors": ("port_dli_mapping_errors_total", "port PortDLIDMappingErrors"),
    "PortVLMappingErrors": ("port_vl_mapping_errors_total", "port PortVLMappingErrors"),
    "PortLoopingErrors": ("port_looping_errors_total", "port PortLoopingErrors"),
}

# Extra arguments for the two query flavours
BASE_ARGS = ["-l", "-x"]
RCV_ERROR_ARGS = ["-E"]


def _setter(name):
    def setCounter(record, value):
        setattr(record, name, value)

    return setCounter


_SETTERS = {f.name: _setter(f.name) for f in fields(PerfQueryCounters) if f.name in COUNTERS}


def parsePerfquery(device, text):
    """Parse perfquery output for one device.

    Args:
        device (InfinibandDevice): device the output was collected from
        text (str): captured perfquery output

    Returns:
        tuple: (list of PerfQueryCounters, number of unparseable values)
    """
    records = {}
    port = ""
    errors = 0.0
    for line in text.splitlines():
        items = line.split(":")
        if len(items) != 2:
            logging.debug("Line has wrong number of elements, skipping: %s" % line)
            continue
        key = items[0].strip()
        value = items[1].replace(".", "").strip()

        if key == "PortSelect":
            port = value
            if port not in records:
                records[port] = PerfQueryCounters(device=device, port_select=port)
            continue

        setCounter = _SETTERS.get(key)
        if setCounter is None:
            logging.debug("Field not part of counters: %s" % key)
            continue
        record = records.get(port)
        if record is None:
            record = PerfQueryCounters(device=device, port_select=port)
            records[port] = record
        try:
            setCounter(record, float(value))
        except ValueError as e:
            logging.error("Unable to parse counter value (guid=%s, field=%s): %s" % (device.guid, key, e))
            errors += 1

    return list(records.values()), errors


def perfqueryArgs(guid, ports, extraArgs):
    """Build perfquery arguments for a device GUID and one or more ports."""
    if not isinstance(ports, str):
        ports = ",".join(ports)
    return list(extraArgs) + ["-G", guid, ports]


class PortCounterMetrics:
    """Port counter gauges for one device kind ("switch" or "hca")."""

    def __init__(self, registry, kind, description):
        self.__gauges = {}
        for field, (suffix, text) in COUNTERS.items():
            self.__gauges[field] = registerGauge(
                registry, "infiniband_%s_%s" % (kind, suffix), "%s %s" % (description, text), ["guid", "port"]
            )

    def clear(self):
        for gauge in self.__gauges.values():
            gauge.clear()

    def update(self, records):
        for record in records:
            for field, gauge in self.__gauges.items():
                value = getattr(record, field)
                if isSet(value):
                    gauge.labels(guid=record.device.guid, port=record.port_select).set(value)


def collectPortCounters(runner, path, timeout, devices, maxConcurrent, baseMetrics=True, rcvErrDetails=False):
    """Query port counters for every device with bounded concurrency.

    One base query covers all connected ports of a device. With rcvErrDetails
    a receive error detail query follows for every port the base query
    returned, inside the same concurrency slot.

    Returns:
        tuple: (list of PerfQueryCounters, errors, timeouts)
    """

    def worker(device, collection):
        args = perfqueryArgs(device.guid, device.ports(), BASE_ARGS)
        try:
            out = runner.run(path, args, timeout)
        except CommandTimeoutError:
            logging.error("Timeout collecting extended perfquery counters (guid=%s)" % device.guid)
            collection.addTimeout()
            return
        except CommandError as e:
            logging.error("Error collecting extended perfquery counters (guid=%s): %s" % (device.guid, e))
            collection.addErrors(1)
            return

        counters, errors = parsePerfquery(device, out)
        collection.addErrors(errors)
        if baseMetrics:
            logging.debug("Adding %d parsed counters (guid=%s, name=%s)" % (len(counters), device.guid, device.name))
            collection.addRecords(counters)

        if not rcvErrDetails:
            return
        for counter in counters:
            args = perfqueryArgs(device.guid, counter.port_select, RCV_ERROR_ARGS)
            try:
                out = runner.run(path, args, timeout)
            except CommandTimeoutError:
                logging.error(
                    "Timeout collecting rcvErr perfquery counters (guid=%s, port=%s)"
                    % (device.guid, counter.port_select)
                )
                collection.addTimeout()
                continue
            except CommandError as e:
                logging.error(
                    "Error collecting rcvErr perfquery counters (guid=%s, port=%s): %s"
                    % (device.guid, counter.port_select, e)
                )
                collection.addErrors(1)
                continue
            rcvErrCounters, errors = parsePerfquery(device, out)
            collection.addErrors(errors)
            collection.addRecords(rcvErrCounters)

    return boundedCollect(devices, worker, maxConcurrent)
