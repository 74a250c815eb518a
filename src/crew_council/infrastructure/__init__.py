"""Infrastructure adapters: completion backends, registry storage, telemetry."""
