"""
Slug Registry Module
"""
from .slugs import SlugRegistry, SlugRegistration, generate_slug, build_public_url, resolve_public_base_url
from .directory import AccountDirectory, AccountPage

__all__ = [
    "SlugRegistry",
    "SlugRegistration",
    "generate_slug",
    "build_public_url",
    "resolve_public_base_url",
    "AccountDirectory",
    "AccountPage",
]
