"""
Rewrite rules for stale download links.

A rule names the leaf field under ``downloads.<format>`` it inspects, the
regular expression used to find candidate documents, and the literal
substring substitution applied to the matched value.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from .exceptions import MalformedDocumentError

DOWNLOADS_KEY = "downloads"

# Keys of the `downloads` sub-document, processed in this order
DEFAULT_FORMATS: Tuple[str, ...] = ("xlsx", "xls", "csv", "csvw")


@dataclass(frozen=True)
class RewriteRule:
    """
    One stale-link correction.

    ``pattern`` selects documents in the store; ``old`` and ``new`` drive a
    plain substring replacement of the first occurrence in the selected
    value. A value can match ``pattern`` without containing ``old``.
    """

    name: str
    field: str
    pattern: str
    old: str
    new: str

    def __post_init__(self) -> None:
        if self.field not in ("href", "public"):
            raise ValueError(f"Unsupported download field: {self.field}")
        if not self.old:
            raise ValueError("Rule substring to replace must not be empty")
        try:
            re.compile(self.pattern)
        except re.error as e:
            raise ValueError(f"Invalid rule pattern {self.pattern!r}: {e}") from e

    def field_path(self, fmt: str) -> str:
        """Dotted path of the targeted field for a download format."""
        return f"{DOWNLOADS_KEY}.{fmt}.{self.field}"

    def query(self, fmt: str) -> Dict[str, Any]:
        """MongoDB filter selecting documents whose field matches the pattern."""
        return {self.field_path(fmt): {"$regex": self.pattern}}

    def is_applicable(self, value: str) -> bool:
        """True when the literal substring is present in ``value``."""
        return self.old in value

    def apply(self, value: str) -> str:
        return value.replace(self.old, self.new, 1)


DEFAULT_RULES: Tuple[RewriteRule, ...] = (
    RewriteRule(
        name="cmd-download",
        field="href",
        pattern="onsdigital",
        old="//download.cmd.onsdigital.co.uk/",
        new="//download.ons.gov.uk/",
    ),
    RewriteRule(
        name="beta-download",
        field="href",
        pattern="download.beta.ons",
        old="//download.beta.ons.",
        new="//download.ons.",
    ),
    RewriteRule(
        name="static-bucket",
        field="public",
        pattern=r"static-cmd\.s3",
        old="//static-cmd.s3",
        new="//ons-dp-production-static.s3",
    ),
)


def get_field(document: Mapping[str, Any], path: str) -> str:
    """
    Read a dotted path from a nested document.

    Raises:
        MalformedDocumentError: If a step is missing or the leaf is not a string
    """
    current: Any = document
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            raise MalformedDocumentError(
                f"Document has no field {path}",
                document_id=document.get("_id"),
                field_path=path,
            )
        current = current[key]
    if not isinstance(current, str):
        raise MalformedDocumentError(
            f"Field {path} is not a string",
            document_id=document.get("_id"),
            field_path=path,
            context={"value_type": type(current).__name__},
        )
    return current
