"""
A transport knows how to open a conduit to an instrument endpoint, and how to close it again.
The connection manager drives a single transport through connect/disconnect cycles.

A transport can be thought of as a conduit factory with a lifecycle.
"""
