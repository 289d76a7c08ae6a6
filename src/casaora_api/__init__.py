"""HTTP API for the Casaora booking lifecycle engine."""
