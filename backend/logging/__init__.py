"""Append-only structured log sinks."""

from backend.logging.jsonl_writer import JsonlWriter, encode_record, read_jsonl

__all__ = ["JsonlWriter", "encode_record", "read_jsonl"]
