"""Command line interface modules.

This package provides the command-line tool that parses the listen,
target and proxy addresses, configures logging and runs the forwarder.
"""
