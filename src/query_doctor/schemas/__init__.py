"""
Pydantic Schemas
================
Validation models for untrusted query payloads.
"""
from .queries import BacktraceFrameIn, QueryPayload, QueryRecordIn, parse_payload, load_payload

__all__ = ["BacktraceFrameIn", "QueryPayload", "QueryRecordIn", "parse_payload", "load_payload"]
