"""
Domain layer containing core business logic and domain services.

Submodules:
- access: Login, payment and session validation behind a pluggable access gate.
- stream: Upload, destination configuration and transcoder supervision.
"""
