"""
Link Reporter

Turns per-href check results into findings annotated with every page that
references the link, prints them and decides the exit status.
"""

import json
import logging
from collections import OrderedDict
from datetime import datetime

import serpy

logger = logging.getLogger(__name__)

ERROR = 'error'
WARNING = 'warning'


class Finding:
    """A failing or suspicious link together with the pages that reference it"""

    def __init__(self, href, sources, result, kind):
        self.href = href
        self.sources = list(sources)
        self.ok = result.ok
        self.status = result.status
        self.reason = result.reason
        self.warning = result.warning
        self.note = result.note
        self.kind = kind


class FindingSerializer(serpy.Serializer):
    href = serpy.StrField()
    sources = serpy.Field()
    kind = serpy.StrField()
    status = serpy.IntField(required=False)
    reason = serpy.StrField(required=False)
    note = serpy.StrField(required=False)


class LinkReportSerializer(serpy.Serializer):
    site_dir = serpy.StrField()
    total_links = serpy.IntField()
    unique_links = serpy.IntField()
    total_errors = serpy.MethodField()
    total_warnings = serpy.MethodField()
    errors = FindingSerializer(many=True)
    warnings = FindingSerializer(many=True)
    timestamp = serpy.StrField()

    def get_total_errors(self, report):
        return len(report.errors)

    def get_total_warnings(self, report):
        return len(report.warnings)


class LinkReport:
    def __init__(self, errors, warnings, total_links=0, unique_links=0, site_dir=''):
        self.errors = errors
        self.warnings = warnings
        self.total_links = total_links
        self.unique_links = unique_links
        self.site_dir = site_dir
        self.timestamp = datetime.now().isoformat()

    @classmethod
    def from_results(cls, targets, results, site_dir=''):
        """Group results by href and split them into errors and warnings

        Findings follow the order in which links were first extracted, not
        the order in which their checks completed.
        """
        sources = OrderedDict()
        for target in targets:
            href_sources = sources.setdefault(target.href, [])
            if target.source not in href_sources:
                href_sources.append(target.source)

        errors = []
        warnings = []
        for href, href_sources in sources.items():
            result = results.get(href)
            if result is None:
                continue
            if not result.ok:
                errors.append(Finding(href, href_sources, result, ERROR))
            elif result.warning:
                warnings.append(Finding(href, href_sources, result, WARNING))

        return cls(errors, warnings, total_links=len(targets),
                   unique_links=len(sources), site_dir=site_dir)

    @property
    def exit_code(self):
        """1 if any link is broken; warnings alone do not fail the run"""
        return 1 if self.errors else 0

    def print_report(self):
        if not self.errors and not self.warnings:
            print("✅ No broken links found!\n")
            return

        if self.warnings:
            print(f"\n⚠️  {len(self.warnings)} link(s) could not be verified (likely bot detection):\n")
            self._print_findings(self.warnings)

        if self.errors:
            print(f"\n❌ Found {len(self.errors)} broken link(s):\n")
            self._print_findings(self.errors)

    @staticmethod
    def _print_findings(findings):
        for finding in findings:
            print(f"  🔗 {finding.href}")
            print(f"     Reason: {finding.reason}")
            print(f"     Found in: {', '.join(finding.sources)}")
            print()

    def to_dict(self):
        return LinkReportSerializer(self).data

    def write_json(self, path):
        """Write the report as JSON"""
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Report written to {path}")
