"""
HL7 v2 ingestion into a Cloud Healthcare HL7v2 store.

Discovers HL7 message files, forwards each one to the store's ingest API
through a rate-limited, authenticated client, and checks the acknowledgement
returned by the store.
"""

__version__ = "0.1.0"
