"""Core domain package for quickreply.

Core contains matching, suppression, and orchestration logic without any
WhatsApp or storage-specific code, keeping the auto-reply decision portable.
"""
