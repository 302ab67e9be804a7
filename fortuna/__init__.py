"""Fortuna: a fixed-stake pari-mutuel prediction-market ledger."""
