"""
Domain helpers for the edge gateway: host allowlist, CORS policy and the
chapter record models.
"""

from .allowlist import HostAllowlist
from .cors_policy import CORSPolicyMiddleware, resolve_cors_headers
from .records import ChapterRecord, PopulateRequest

__all__ = [
    "HostAllowlist",
    "CORSPolicyMiddleware",
    "resolve_cors_headers",
    "ChapterRecord",
    "PopulateRequest",
]
