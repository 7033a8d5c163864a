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

"""Fabric records produced by the tool output parsers.

Devices and uplinks describe one topology snapshot; counter and switch health
records describe one tool invocation. Numeric fields that a tool did not
report hold NaN, which is distinct from a reported zero.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

UNSET = math.nan


def isSet(value: float) -> bool:
    return not math.isnan(value)


@dataclass(frozen=True)
class InfinibandUplink:
    type: str
    lid: str
    port_number: str
    guid: str
    name: str
    port_name: str = ""


@dataclass(frozen=True)
class InfinibandDevice:
    type: str
    lid: str
    guid: str
    rate: float
    raw_rate: float
    name: str
    port_name: str = ""
    uplinks: Dict[str, InfinibandUplink] = field(default_factory=dict)

    def ports(self) -> List[str]:
        """Connected local ports in numeric order."""
        return sorted(self.uplinks, key=_portKey)


def _portKey(port: str):
    return (0, int(port), port) if port.isdigit() else (1, 0, port)


@dataclass
class PerfQueryCounters:
    device: InfinibandDevice
    port_select: str = ""
    PortXmitData: float = UNSET
    PortRcvData: float = UNSET
    PortXmitPkts: float = UNSET
    PortRcvPkts: float = UNSET
    PortUnicastXmitPkts: float = UNSET
    PortUnicastRcvPkts: float = UNSET
    PortMulticastXmitPkts: float = UNSET
    PortMulticastRcvPkts: float = UNSET
    SymbolErrorCounter: float = UNSET
    LinkErrorRecoveryCounter: float = UNSET
    LinkDownedCounter: float = UNSET
    PortRcvErrors: float = UNSET
    PortRcvRemotePhysicalErrors: float = UNSET
    PortRcvSwitchRelayErrors: float = UNSET
    PortXmitDiscards: float = UNSET
    PortXmitConstraintErrors: float = UNSET
    PortRcvConstraintErrors: float = UNSET
    LocalLinkIntegrityErrors: float = UNSET
    ExcessiveBufferOverrunErrors: float = UNSET
    VL15Dropped: float = UNSET
    PortXmitWait: float = UNSET
    QP1Dropped: float = UNSET
    PortLocalPhysicalErrors: float = UNSET
    PortMalformedPktErrors: float = UNSET
    PortBufferOverrunErrors: float = UNSET
    PortDLIDMappingErrors: float = UNSET
    PortVLMappingErrors: float = UNSET
    PortLoopingErrors: float = UNSET


@dataclass
class SwitchPowerSupply:
    id: str
    status: str = ""
    dc_power: str = ""
    fan_status: str = ""
    power_watts: float = UNSET


@dataclass
class SwitchFan:
    id: str
    rpm: float = UNSET


@dataclass
class SwitchHealth:
    part_number: str = ""
    serial_number: str = ""
    psid: str = ""
    firmware_version: str = ""
    uptime: float = 0.0
    power_supplies: List[SwitchPowerSupply] = field(default_factory=list)
    temperature: float = UNSET
    fan_status: str = ""
    fans: List[SwitchFan] = field(default_factory=list)
    device: Optional[InfinibandDevice] = None
    duration: float = 0.0
    error: float = 0.0
    timeout: float = 0.0
