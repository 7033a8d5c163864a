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

import configparser
import threading
from pathlib import Path

import pytest

from infiniband_exporter import utils

FIXTURE_DIR = Path(__file__).parent / "fixtures"


def readFixture(kind, name):
    return (FIXTURE_DIR / kind / f"{name}.out").read_text()


class FixtureRunner:
    """Stand-in for CommandRunner that answers from files under test/fixtures."""

    def __init__(self):
        self.calls = []
        self.timeoutTools = set()
        self.failTools = set()
        self.topology = "test"
        # switch LID -> ibswinfo fixture name
        self.ibswinfo = {"1719": "test1", "2052": "test2"}
        self.__lock = threading.Lock()

    def run(self, tool, args, timeout):
        with self.__lock:
            self.calls.append((tool, list(args)))

        if tool in self.timeoutTools:
            raise utils.CommandTimeoutError(f"{tool} timed out after {timeout} seconds")
        if tool in self.failTools:
            raise utils.CommandError(f"{tool} exited with code 1: failure")

        if tool == "ibnetdiscover":
            return readFixture("ibnetdiscover", self.topology)
        if tool == "perfquery":
            guid = args[args.index("-G") + 1]
            if "-E" in args:
                return readFixture("perfquery-rcv-error", f"{guid}-{args[-1]}")
            return readFixture("perfquery", guid)
        if tool == "ibswinfo":
            lid = args[-1][len("lid-") :]
            return readFixture("ibswinfo", self.ibswinfo[lid])
        raise utils.CommandError(f"unexpected tool {tool}")

    def toolCalls(self, tool):
        return [args for name, args in self.calls if name == tool]


def buildConfig(**options):
    """Runtime config with every collector disabled unless enabled via options."""
    config = configparser.ConfigParser()
    config["infiniband_exporter"] = {
        "enable_exporter_metrics": "False",
        "enable_switch": "False",
        "enable_hca": "False",
        "enable_ibswinfo": "False",
    }
    for key, value in options.items():
        section, _, option = key.rpartition("__")
        name = "infiniband_exporter." + section if section else "infiniband_exporter"
        if not config.has_section(name):
            config.add_section(name)
        config[name][option] = str(value)
    return config


@pytest.fixture
def fixture_runner():
    return FixtureRunner()


@pytest.fixture
def read_fixture():
    return readFixture


@pytest.fixture
def build_config():
    return buildConfig
