"""
Core infrastructure for the video ingest backend:

- auth: Bearer JWT verification
- database: MongoDB async client (Motor) and lifecycle helpers
- errors: IngestError hierarchy and its HTTP rendering
"""
