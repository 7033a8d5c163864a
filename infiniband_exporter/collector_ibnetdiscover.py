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

"""Fabric topology discovery

Runs ibnetdiscover once per scrape and turns its port listing into switch and
HCA device records. Each connected port line looks like:

SW  1719 10 0x7cfe9003009ce5b0 4x EDR - CA   134  1 0x7cfe9003003b4bde ( 'ib-i1l1s01' - 'o0001 HCA-1' )

Fields are: local type, LID, port, GUID, width, rate, "-", then the same four
for the remote end, followed by both node names. The resulting snapshot is
published to the shared Topology consumed by the port counter and switch
health collectors.
"""

import logging
import re

from infiniband_exporter import utils
from infiniband_exporter.collector_base import Collector
from infiniband_exporter.models import InfinibandDevice, InfinibandUplink

# Per-lane signalling and effective data rates in Gbps
RATES = {
    "SDR": (2.5, 2.0),
    "DDR": (5.0, 4.0),
    "QDR": (10.0, 8.0),
    "FDR10": (10.3125, 10.0),
    "FDR": (14.0625, 13.64),
    "EDR": (25.78125, 25.0),
    "HDR": (53.125, 50.0),
    "NDR": (106.25, 100.0),
    "XDR": (212.5, 200.0),
}

# Gbps to bytes per second
BYTES_PER_GBPS = 125_000_000

_WIDTH_RE = re.compile(r"[0-9]+")
_NAMES_RE = re.compile(r"\( '(.+)' - '(.+)' \)")


class TopologyParseError(ValueError):
    pass


def parseRate(width, rate):
    """Compute link bandwidth from ibnetdiscover width and rate tokens.

    Args:
        width (str): link width token, e.g. "4x"
        rate (str): rate label, e.g. "EDR"

    Returns:
        tuple: (effective, raw) bandwidth in bytes per second
    """
    match = _WIDTH_RE.findall(width)[:1]
    if len(match) != 1:
        raise TopologyParseError("Unable to find match for %s: %s" % (width, match))
    lanes = float(match[0])

    if rate not in RATES:
        raise TopologyParseError("Unknown rate %s" % rate)
    rawLane, effectiveLane = RATES[rate]

    return effectiveLane * lanes * BYTES_PER_GBPS, rawLane * lanes * BYTES_PER_GBPS


def displayName(name):
    # "o0001 HCA-1" is exported as "o0001"
    if " HCA" in name:
        return name.split(" ")[0]
    return name


def parseNames(line):
    """Extract the local and remote node names from a port line.

    Returns:
        tuple: (local name, remote name) as printed by ibnetdiscover
    """
    match = _NAMES_RE.search(line)
    if match is None:
        raise TopologyParseError("Unable to extract names using regexp: %s" % line)
    return match.group(1).strip(), match.group(2).strip()


def _isQuoted(token):
    return len(token) >= 2 and token.startswith("'") and token.endswith("'")


def mergeQuotedName(items):
    """Rejoin a trailing quoted node name that whitespace splitting broke apart."""
    last = items[-1] if items else ""
    if not last.endswith("'") or _isQuoted(last):
        return items
    for i in range(len(items) - 2, -1, -1):
        if items[i].startswith("'"):
            return items[:i] + [" ".join(items[i:])]
    return items


def parseIbnetdiscover(text):
    """Parse `ibnetdiscover --ports` output.

    Returns:
        tuple: (switches, hcas) lists of InfinibandDevice sorted by GUID
    """
    devices = {}
    for line in text.splitlines():
        items = mergeQuotedName(line.split())
        if len(items) < 6 or items[5] == "???":
            logging.debug("Skipping line that is not connected: %s" % line)
            continue
        if items[5] == "SDR" and len(items) == 7:
            logging.debug("Skipping split mode port: %s" % line)
            continue
        if len(items) < 11:
            logging.debug("Skipping line without remote port: %s" % line)
            continue

        guid = items[3]
        try:
            rate, rawRate = parseRate(items[4], items[5])
        except TopologyParseError:
            logging.error("Unable to parse speed (width=%s, rate=%s, guid=%s)" % (items[4], items[5], guid))
            raise
        try:
            portName, uplinkPortName = parseNames(line)
        except TopologyParseError:
            logging.error("Unable to parse names (guid=%s)" % guid)
            raise

        device = devices.setdefault(guid, {"uplinks": {}})
        device.update(
            type=items[0],
            lid=items[1],
            guid=guid,
            rate=rate,
            raw_rate=rawRate,
            name=displayName(portName),
            port_name=portName,
        )
        device["uplinks"][items[2]] = InfinibandUplink(
            type=items[7],
            lid=items[8],
            port_number=items[9],
            guid=items[10],
            name=displayName(uplinkPortName),
            port_name=uplinkPortName,
        )

    switches = []
    hcas = []
    for guid in sorted(devices):
        device = InfinibandDevice(**devices[guid])
        if device.type == "SW":
            switches.append(device)
        elif device.type == "CA":
            hcas.append(device)
    return switches, hcas


def ibnetdiscoverArgs(nodeNameMap=""):
    args = ["--ports"]
    if nodeNameMap:
        args += ["--node-name-map", nodeNameMap]
    return args


class IBNetDiscover(Collector):
    name = "ibnetdiscover"

    def __init__(self, config, runner, topology, exporter):
        """Initialize the topology discovery collector.

        Args:
            config (configparser.ConfigParser): Cached copy of runtime configuration.
            runner (utils.CommandRunner): Executes fabric diagnostic tools.
            topology (Topology): Shared snapshot updated on every scrape.
            exporter (ExporterMetrics): Exporter self-metrics.
        """
        logging.debug("Initializing ibnetdiscover topology collector")

        section = utils.getSection(config, "infiniband_exporter.ibnetdiscover")
        self.__path = utils.removeQuotes(section.get("path", "ibnetdiscover"))
        self.__nodeNameMap = utils.removeQuotes(section.get("node_name_map", ""))
        self.__timeout = utils.getTimeout(section, 20)

        self.__runner = runner
        self.__topology = topology
        self.__exporter = exporter

    def registerMetrics(self):
        """Register metrics of interest"""
        logging.info("--> topology source: %s %s" % (self.__path, " ".join(ibnetdiscoverArgs(self.__nodeNameMap))))

    def updateMetrics(self):
        """Refresh the shared topology snapshot"""
        name = self.__exporter.collectorName(self.name)
        try:
            out = self.__runner.run(self.__path, ibnetdiscoverArgs(self.__nodeNameMap), self.__timeout)
        except utils.CommandTimeoutError as e:
            logging.error("Timeout collecting ibnetdiscover data: %s" % e)
            self.__topology.invalidate()
            self.__exporter.record(name, errors=0, timeouts=1)
            return
        except utils.CommandError as e:
            logging.error("Error collecting ibnetdiscover data: %s" % e)
            self.__topology.invalidate()
            self.__exporter.record(name, errors=1, timeouts=0)
            return

        try:
            switches, hcas = parseIbnetdiscover(out)
        except TopologyParseError as e:
            logging.error("Error parsing ibnetdiscover output: %s" % e)
            self.__topology.invalidate()
            self.__exporter.record(name, errors=1, timeouts=0)
            return

        logging.debug("Discovered %d switches and %d HCAs" % (len(switches), len(hcas)))
        self.__topology.update(switches, hcas)
        self.__exporter.record(name, errors=0, timeouts=0)
