"""ridertrack Infrastructure - position sources, clock, credentials and backend client."""
