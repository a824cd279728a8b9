"""
Download Link Fixer

Maintenance tool that finds dataset instance documents whose download links
still point at obsolete domains or buckets and rewrites them in MongoDB.
"""

from link_fixer import logging_config  # noqa: F401
from link_fixer.config_manager import FixerConfig, LinkFixerConfig, MongoConfig
from link_fixer.fixer import LinkFixer, fix_download_links
from link_fixer.models import FixReport, RuleResult
from link_fixer.rules import DEFAULT_FORMATS, DEFAULT_RULES, RewriteRule
from link_fixer.store import InstanceStore

__version__ = "1.0.0"

__all__ = [
    "DEFAULT_FORMATS",
    "DEFAULT_RULES",
    "FixReport",
    "FixerConfig",
    "InstanceStore",
    "LinkFixer",
    "LinkFixerConfig",
    "MongoConfig",
    "RewriteRule",
    "RuleResult",
    "fix_download_links",
]
