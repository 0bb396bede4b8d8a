"""
Services module for business logic separation.

- alias_codec: pure fingerprint / token transforms
- url_service: create, lookup and hit recording
- telemetry: hit event queue and its background aggregator
"""
