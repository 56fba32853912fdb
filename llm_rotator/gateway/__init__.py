"""LLM Provider Rotation Layer.

Synchronous, thread-safe infrastructure for spreading text generation
across free-tier LLM vendors with:
  - Provider Stats (call counters, RPM sliding window, cooldowns)
  - Vendor Providers (one class per wire format)
  - Cooldown Policy (429 / 5xx handling, Retry-After)
  - Response Normalizer (envelope -> plain text)
  - Provider Rotator (round-robin with fallback and aggregated errors)
"""
