"""Adapters that plug storage and WhatsApp delivery into the core ports."""
