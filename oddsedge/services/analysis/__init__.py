"""Consensus, no-vig edge engine, market position and featured picks."""
