"""
Document sensitivity classification engine.

LLM-backed classification of uploaded documents into a configurable
sensitivity/safety taxonomy, with cross-verification, human-in-the-loop
correction and an append-only audit trail.
"""
