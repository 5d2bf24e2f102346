"""
PZEM energy monitor alert engine.

Normalizes voltage/current/power/energy/frequency/power-factor readings
fetched from the monitoring backend, classifies them into alerts, and
publishes each evaluation pass to subscribers on a fixed interval.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""
