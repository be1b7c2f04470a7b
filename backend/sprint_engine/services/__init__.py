"""
Engine services.

- providers: single-attempt gateways to reasoning providers
- planning: skeleton/expansion sprint planner
- review: remote-first review with deterministic fallback
- scheduling: next-sprint generation and look-ahead buffer
- adaptation: performance analysis and recalibration
- completion: sprint completion workflow and progress
"""
