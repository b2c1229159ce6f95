"""
dualwrite: batch ingestion that writes every record to a relational primary
store and a document secondary store, reporting a per-record outcome and
queueing half-written records for reconciliation.
"""

__version__ = "0.1.0"
