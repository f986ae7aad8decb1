"""MedLedger upload relay (Flask)."""
