"""
Reading tracker core package.

This package currently focuses on the progress subsystem. It exposes
dataclasses for reading events and goals, a partition index for the fixed
30-part document, storage backends behind one repository contract, a pure
aggregation engine, and a request router that falls back to a local store
when the remote service cannot answer.
"""
