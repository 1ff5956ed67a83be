#!/usr/bin/env python3
"""
Wrapper script to run the special-resource-operator with Kopf.

Launches Kopf's CLI with all standard arguments. Without a namespace
option the operator serves all namespaces. Operator settings are read
from the environment (and an optional `.env` file), see
`sro.types.settings`.

Usage:
    python run_operator.py [any kopf run arguments]

Examples:
    python run_operator.py --verbose
    LOG_LEVEL=DEBUG python run_operator.py --log-format=json
    CHARTS_DIR=./charts METRICS_ENABLED=false python run_operator.py
"""

import sys

NAMESPACE_OPTIONS = ("-n", "--namespace", "-A", "--all-namespaces")


if __name__ == '__main__':
    import kopf.cli

    # Import the operator module (which registers handlers via decorators)
    import sro.app  # noqa: F401

    args = sys.argv[1:]
    if not any(arg.split("=")[0] in NAMESPACE_OPTIONS for arg in args):
        args.append("--all-namespaces")

    # Behave as if user called: kopf run <args>
    sys.argv[1:] = ["run"] + args

    sys.exit(kopf.cli.main(prog_name="kopf"))
