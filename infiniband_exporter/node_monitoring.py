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
# Command line entry point. Serves /metrics through a Flask application hosted
# by gunicorn, or runs a single collection cycle and writes the result to a
# textfile collector file.
# --

import argparse
import fcntl
import logging
import sys

import gunicorn.app.base
from flask import Flask
from prometheus_client import CONTENT_TYPE_LATEST, write_to_textfile

from infiniband_exporter import utils
from infiniband_exporter.monitor import Monitor

METRICS_ENDPOINT = "/metrics"

INDEX_HTML = f"""<html>
<head><title>InfiniBand Exporter</title></head>
<body>
<h1>InfiniBand Exporter</h1>
<p><a href='{METRICS_ENDPOINT}'>Metrics</a></p>
</body>
</html>
"""


class ExporterServer(gunicorn.app.base.BaseApplication):
    """Embedded gunicorn application serving a Flask app."""

    def __init__(self, app, options=None):
        self.options = options or {}
        self.application = app
        super().__init__()

    def load_config(self):
        config = {key: value for key, value in self.options.items() if key in self.cfg.settings and value is not None}
        for key, value in config.items():
            self.cfg.set(key.lower(), value)

    def load(self):
        return self.application


def createApp(monitor):
    app = Flask("infiniband_exporter")

    @app.route("/")
    def index():
        return INDEX_HTML

    @app.route(METRICS_ENDPOINT)
    def metrics():
        return monitor.updateAllMetrics(), {"Content-Type": CONTENT_TYPE_LATEST}

    return app


def serverOptions(address, port, post_fork):
    """gunicorn settings for the exporter.

    A scrape lasts as long as the slowest sequence of tool calls, so the worker
    timeout is disabled (0) rather than left at the 30 second default.
    """
    return {
        "bind": "%s:%s" % (address, port),
        "workers": 1,
        "timeout": 0,
        "post_fork": post_fork,
    }


def runOnce(monitor, output, lockfile):
    """Collect once and write metrics to output.

    Returns:
        int: process exit code
    """
    try:
        lock = open(lockfile, "w")
    except OSError as e:
        logging.error("Unable to obtain lock on lock file %s: %s" % (lockfile, e))
        return 1

    with lock:
        try:
            fcntl.flock(lock, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            logging.error("Lock file %s is locked" % lockfile)
            return 1

        monitor.updateAllMetrics()
        try:
            # writes a temporary file next to output and renames it into place
            write_to_textfile(output, monitor.registry)
        except OSError as e:
            logging.error("Error writing Prometheus metrics to %s: %s" % (output, e))
            return 1

    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Prometheus exporter for InfiniBand fabrics")
    parser.add_argument("--configfile", type=str, help="runtime config file", default=None)
    parser.add_argument("--runonce", action="store_true", help="run exporter once and write metrics to file")
    parser.add_argument("--output", type=str, help="output file to write metrics to when using --runonce")
    parser.add_argument("--lockfile", type=str, help="lock file path for --runonce")
    parser.add_argument("--address", type=str, help="address to listen on")
    parser.add_argument("--port", type=int, help="port to listen on")
    parser.add_argument("--version", action="version", version=utils.getVersion())
    args = parser.parse_args(argv)

    config = utils.readConfig(args.configfile)
    settings = utils.getSection(config, "infiniband_exporter")
    runonceSettings = utils.getSection(config, "infiniband_exporter.runonce")

    monitor = Monitor(config, runonce=args.runonce)

    if args.runonce:
        output = args.output or utils.removeQuotes(runonceSettings.get("output", ""))
        lockfile = args.lockfile or utils.removeQuotes(
            runonceSettings.get("lockfile", "/tmp/infiniband_exporter.lock")
        )
        if not output:
            logging.error("[ERROR]: Must specify output path when using runonce mode")
            sys.exit(1)
        monitor.initMetrics()
        sys.exit(runOnce(monitor, output, lockfile))

    address = args.address or settings.get("address", "0.0.0.0")
    port = args.port or settings.getint("port", 9315)
    logging.info("Starting infiniband_exporter (version = %s)" % utils.getVersion())
    logging.info("Starting Server on %s:%s" % (address, port))

    app = createApp(monitor)

    def post_fork(server, worker):
        monitor.initMetrics()

    ExporterServer(app, serverOptions(address, port, post_fork)).run()


if __name__ == "__main__":
    main()
