"""Command-line helpers for seeding and exporting the ledger."""
