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

# Collectors in execution order. Topology discovery runs first on every scrape;
# the remaining collectors consume the fabric it discovers.
COLLECTORS = [
    {
        "runtime_option": None,
        "enabled_by_default": True,
        "file": "infiniband_exporter.collector_ibnetdiscover",
        "className": "IBNetDiscover",
    },
    {
        "runtime_option": "enable_switch",
        "enabled_by_default": True,
        "file": "infiniband_exporter.collector_switch",
        "className": "SwitchCollector",
    },
    {
        "runtime_option": "enable_hca",
        "enabled_by_default": False,
        "file": "infiniband_exporter.collector_hca",
        "className": "HCACollector",
    },
    {
        "runtime_option": "enable_ibswinfo",
        "enabled_by_default": False,
        "file": "infiniband_exporter.collector_ibswinfo",
        "className": "IbswinfoCollector",
    },
]
