"""Command line interface modules.

The commands start the gateway, list the local interfaces it can listen
on, and report errors to the operator.
"""
