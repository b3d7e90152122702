"""
pNode Monitor: ingestion and view core

Polls a pRPC endpoint for raw pNode records and keeps a scored, de-duplicated
dataset that the API layer filters, sorts and pages.
Responsibilities:
- Decode raw account records (pre-parsed JSON or Borsh-style bytes)
- Score uptime / performance / reputation from raw telemetry
- Collapse duplicate records per node identity
- Hold the canonical dataset and derived view for subscribers
- Drive the periodic refresh cycle and its countdown
"""
