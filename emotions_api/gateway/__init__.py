"""Completion Gateway Layer.

Resilient, async access to the Anthropic Messages API:
  - Request Validator (prompt/token/temperature limits, model allow-list)
  - Circuit Breaker (closed / open / half-open with a single trial)
  - Retry Policy (exponential backoff with jitter)
  - Usage Tracker (token counts and cost estimate per window)
  - Completion Gateway (orchestration and error translation)
"""
