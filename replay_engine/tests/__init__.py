"""
Test suite for the replay engine.

Focus areas:
- Pacing and classification rules
- State machine transitions and guards
- Concurrency, cancellation and resume of executions
- Bus, log and queue integration (moto / botocore stubs)
"""
