"""Sampling, retention, and the engine that drives the tick loop."""
