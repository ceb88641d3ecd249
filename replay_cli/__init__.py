"""
ebreplay CLI - paced EventBridge archive replay

Commands:
- ebreplay run - dispatch replay triggers and wait for their outcome
- ebreplay status - show execution status from a journal
- ebreplay archive start/seed - start an archive replay, publish test events
"""

__version__ = "0.1.0"
