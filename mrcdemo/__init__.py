"""Simulated medical robot control stack: sensor pipeline, binary IPC, heartbeat,
control loop, algorithm worker and stress test."""

__version__ = "0.1.0"