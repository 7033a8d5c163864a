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

"""Shared helpers: external command invocation, configuration access and logging."""

import configparser
import importlib.metadata
import importlib.resources
import logging
import os
import subprocess
import sys


class CommandError(Exception):
    """External tool could not be started or exited with a non-zero status."""


class CommandTimeoutError(Exception):
    """External tool did not complete before its deadline."""


def runCommand(command, args, timeout):
    """Run an external tool and return its captured standard output.

    Args:
        command (str): executable name or path
        args (list): command line arguments
        timeout (float): deadline in seconds for this invocation

    Raises:
        CommandTimeoutError: the deadline expired (the child is killed).
        CommandError: the process could not be spawned or returned non-zero.
    """
    cmd = [command] + list(args)
    logging.debug("Executing: %s" % " ".join(cmd))
    try:
        results = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise CommandTimeoutError("%s timed out after %s seconds" % (command, timeout))
    except OSError as e:
        raise CommandError("unable to execute %s: %s" % (command, e))

    if results.returncode != 0:
        raise CommandError("%s exited with code %d: %s" % (command, results.returncode, results.stderr.strip()))
    return results.stdout


class CommandRunner:
    """Invokes fabric diagnostic tools, optionally through sudo.

    Callers pass the tool path and its arguments; sudo handling is applied
    here so argument builders stay independent of privilege escalation.
    """

    def __init__(self, sudo=False, execute=runCommand):
        self.__sudo = sudo
        self.__execute = execute

    @property
    def sudo(self):
        return self.__sudo

    def run(self, tool, args, timeout):
        if self.__sudo:
            return self.__execute("sudo", [tool] + list(args), timeout)
        return self.__execute(tool, args, timeout)


def readConfig(configFile=None):
    """Load runtime configuration.

    Uses the packaged default file when no path is given.
    """
    config = configparser.ConfigParser()
    if configFile is None:
        resource = importlib.resources.files("infiniband_exporter") / "config" / "infiniband_exporter.default"
        with importlib.resources.as_file(resource) as path:
            configFile = str(path)
            config.read(configFile)
    else:
        if not os.path.isfile(configFile):
            logging.error("[ERROR]: Unable to find runtime config file %s" % configFile)
            sys.exit(1)
        config.read(configFile)

    logging.debug("Using runtime config file %s" % configFile)
    return config


def getSection(config, name):
    """Return a config section, creating an empty one when absent."""
    if not config.has_section(name):
        config.add_section(name)
    return config[name]


def getTimeout(section, default):
    try:
        timeout = section.getfloat("timeout_secs", default)
    except ValueError:
        logging.error("[ERROR]: invalid timeout_secs in [%s]" % section.name)
        sys.exit(4)
    if timeout <= 0:
        logging.error("[ERROR]: timeout_secs in [%s] must be positive (%s)" % (section.name, timeout))
        sys.exit(4)
    return timeout


def getMaxConcurrent(section, default=1):
    try:
        limit = section.getint("max_concurrent", default)
    except ValueError:
        logging.error("[ERROR]: invalid max_concurrent in [%s]" % section.name)
        sys.exit(4)
    if limit < 1:
        logging.error("[ERROR]: max_concurrent in [%s] must be at least 1 (%d)" % (section.name, limit))
        sys.exit(4)
    return limit


def removeQuotes(string):
    if string.startswith('"') and string.endswith('"'):
        return string[1:-1]
    return string


def getVersion():
    """Return the installed package version."""
    try:
        return importlib.metadata.version("infiniband-exporter")
    except importlib.metadata.PackageNotFoundError:
        return "Unknown"


class PrefixFilter(logging.Filter):
    """Prepend a fixed prefix to every log message."""

    def __init__(self, prefix):
        super().__init__()
        self.prefix = prefix

    def filter(self, record):
        record.msg = self.prefix + str(record.msg)
        return True
