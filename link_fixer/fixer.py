"""
Download link fixer.

Finds instance documents whose download links still point at obsolete
domains or buckets and rewrites them in place. Work is bounded by a limit per
(format, rule) pair, so a single run may leave matches behind; re-run (or use
``repeat_until_clean``) until ``count_done`` is 0.
"""

import json
from typing import Any, Callable, Dict, Optional, Sequence

import click
import structlog

from .config_manager import FixerConfig
from .models import FixReport, RuleResult
from .rules import DEFAULT_RULES, RewriteRule, get_field
from .store import InstanceStore

logger = structlog.get_logger(__name__)


class LinkFixer:
    """Rewrites stale download links in the instances collection."""

    def __init__(
        self,
        store: InstanceStore,
        config: FixerConfig,
        rules: Sequence[RewriteRule] = DEFAULT_RULES,
        echo: Callable[[str], Any] = click.echo,
    ) -> None:
        """
        Args:
            store: Connected instance store
            config: Formats, limit and mode flags for the run
            rules: Rewrite rules, applied in order for every format
            echo: Sink for the audit trail (stdout by default)
        """
        if not rules:
            raise ValueError("At least one rewrite rule is required")
        self.store = store
        self.config = config
        self.rules = tuple(rules)
        self.echo = echo

    @property
    def max_rewrites_per_pass(self) -> int:
        return self.config.limit * len(self.rules) * len(self.config.formats)

    def run(self) -> FixReport:
        """Run a single bounded pass, or repeat passes when configured to."""
        if self.config.repeat_until_clean:
            return self.fix_until_clean()
        return self.fix_all()

    def fix_all(self) -> FixReport:
        """
        Apply every rule to every configured format once.

        Returns:
            FixReport for this pass
        """
        report = FixReport(dry_run=self.config.dry_run, passes=1)

        for fmt in self.config.formats:
            self.echo(f"processing: {fmt}")
            for rule in self.rules:
                report.results.append(self.fix_rule(fmt, rule))

        self.echo(f"count_done: {report.count_done}")
        logger.info(
            "Link fixing pass complete",
            dry_run=report.dry_run,
            count_done=report.count_done,
            changed=report.changed,
            unchanged=report.unchanged,
            conflicts=report.conflicts,
        )
        return report

    def fix_until_clean(self) -> FixReport:
        """
        Repeat passes until one makes no effective change.

        A dry run cannot make progress, so it always stops after one pass.
        Stops early at ``max_passes``.
        """
        total = FixReport(dry_run=self.config.dry_run)

        while total.passes < self.config.max_passes:
            report = self.fix_all()
            total.merge(report)
            if self.config.dry_run or report.changed == 0:
                break
        else:
            logger.warning(
                "Stopped before links were clean",
                max_passes=self.config.max_passes,
                count_done=total.count_done,
            )

        if total.passes > 1:
            self.echo(f"passes: {total.passes}, total count_done: {total.count_done}")
        return total

    def fix_rule(self, fmt: str, rule: RewriteRule) -> RuleResult:
        """
        Rewrite up to ``limit`` documents matching ``rule`` for one format.

        Returns:
            RuleResult with the counts for this (format, rule) pair
        """
        field_path = rule.field_path(fmt)
        result = RuleResult(format=fmt, rule=rule.name, field_path=field_path)

        # Materialise the batch before writing back to the same collection
        documents = list(
            self.store.find(
                rule.query(fmt), {field_path: True}, limit=self.config.limit
            )
        )
        result.matched = len(documents)

        for document in documents:
            old_value = get_field(document, field_path)

            if not rule.is_applicable(old_value):
                result.unchanged += 1
                if self.config.skip_unchanged:
                    logger.info(
                        "Skipping value without replaceable substring",
                        document_id=str(document["_id"]),
                        field_path=field_path,
                        value=old_value,
                        rule=rule.name,
                    )
                    continue

            new_value = rule.apply(old_value)
            if self.replace_link(document["_id"], field_path, old_value, new_value):
                result.rewritten += 1
                if new_value != old_value:
                    result.changed += 1
            else:
                result.conflicts += 1

        return result

    def replace_link(
        self, document_id: Any, field_path: str, old_value: str, new_value: str
    ) -> bool:
        """
        Print the attempted change, then persist it unless this is a dry run.

        Returns:
            True if the change was applied (or would be, in dry-run mode)
        """
        self.echo(self._audit_line(document_id, field_path, old_value, new_value))

        if self.config.dry_run:
            return True

        if self.store.update_field(document_id, field_path, old_value, new_value):
            return True

        logger.warning(
            "Document changed before update, not rewritten",
            document_id=str(document_id),
            field_path=field_path,
            expected=old_value,
        )
        return False

    def _audit_line(
        self, document_id: Any, field_path: str, old_value: str, new_value: str
    ) -> str:
        selector: Dict[str, Any] = {"_id": document_id, field_path: old_value}
        update: Dict[str, Any] = {"$set": {field_path: new_value}}
        return json.dumps([selector, update], default=str)


def fix_download_links(
    store: InstanceStore,
    config: FixerConfig,
    rules: Optional[Sequence[RewriteRule]] = None,
) -> FixReport:
    """Convenience wrapper: build a ``LinkFixer`` and run it."""
    fixer = LinkFixer(store, config, rules or DEFAULT_RULES)
    return fixer.run()
