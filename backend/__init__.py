"""Shared infrastructure: cryptographic primitives and append-only log sinks."""
