#!/usr/bin/env python3
"""
Dead Links Finder

This script audits a rendered static site for dead or misleading links
before it is published.

Features:
- Finds every .html file under the site directory
- Checks local links against the files on disk (clean URLs and directory
  indexes included)
- Checks external links over HTTP with bounded concurrency, retries and
  soft 404 detection
- Treats 403/429 answers as probable bot detection (warnings, not errors)
- Reports each broken link once with every page that references it
- Exits non-zero only when real broken links were found
"""

import argparse
import asyncio
import logging
import os
import sys

from link_checker import LinkChecker
from link_classifier import filter_targets
from link_extractor import ReadError, extract_links, find_html_files
from link_reporter import LinkReport
from link_scheduler import LinkScheduler
from linkcheck_config import DEFAULT_CONFIG_FILE, load_config

logger = logging.getLogger(__name__)


def setup_logging(verbose=False, log_file=None):
    """Setup logging configuration"""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


def print_progress(completed, total):
    """Live checked/total counter on a single console line"""
    sys.stdout.write(f"\rChecking links: {completed}/{total}")
    sys.stdout.flush()


class DeadLinksFinder:
    def __init__(self, config, checker=None, progress_callback=print_progress):
        self.config = config
        self.site_dir = os.path.abspath(config.site_dir)
        self.checker = checker
        self.progress_callback = progress_callback

        self.html_files = []
        self.targets = []
        self.results = {}
        self.report = None

    def collect_targets(self):
        """Extract links from every HTML file and drop the excluded ones

        Raises ReadError if a document cannot be read.
        """
        self.html_files = sorted(find_html_files(self.site_dir))
        logger.info(f"Found {len(self.html_files)} HTML files in {self.site_dir}")

        targets = []
        for html_file in self.html_files:
            targets.extend(extract_links(html_file, self.site_dir))

        self.targets = filter_targets(targets, self.config)
        logger.info(f"Found {len(self.targets)} links to check "
                    f"({len(targets) - len(self.targets)} excluded)")
        return self.targets

    async def check_targets(self, targets):
        """Check every unique href of the targets"""
        checker = self.checker or LinkChecker(self.config)
        scheduler = LinkScheduler(checker.check, self.config.concurrency,
                                  progress_callback=self.progress_callback)
        try:
            return await scheduler.run(targets)
        finally:
            if self.checker is None:
                checker.close()

    def run(self):
        """Run the whole audit and return the process exit code"""
        if not os.path.isdir(self.site_dir):
            print(f"❌ Site directory not found: {self.site_dir}")
            print("   Make sure the site has been built first.")
            return 1

        print(f"\n🔍 Checking links in {self.site_dir}...\n")

        targets = self.collect_targets()
        if not self.html_files:
            print("No HTML files found.")
            return 0

        unique_count = len(LinkScheduler.unique_targets(targets))
        print(f"Found {len(self.html_files)} HTML files.")
        print(f"Found {unique_count} unique links to check.\n")

        self.results = asyncio.run(self.check_targets(targets))
        print('\n')

        self.report = LinkReport.from_results(targets, self.results, site_dir=self.site_dir)
        self.report.print_report()
        logger.info(f"Summary: {unique_count} unique links checked, "
                    f"{len(self.report.errors)} broken, {len(self.report.warnings)} warnings")
        return self.report.exit_code


def build_parser():
    parser = argparse.ArgumentParser(
        description="Dead Links Finder - audit a rendered static site for broken links",
        epilog=(
            "Exit status is 0 when no broken links were found (warnings allowed) "
            "and 1 when at least one link is broken or the site directory is missing."
        ),
    )
    parser.add_argument("--config", default=None,
                        help=f"Path to the JSON config file (default: {DEFAULT_CONFIG_FILE})")
    parser.add_argument("--site-dir", default=None,
                        help="Rendered site directory, overrides siteDir from the config")
    parser.add_argument("--json-report", default=None, metavar="FILE",
                        help="Also write the report as JSON to FILE")
    parser.add_argument("--log-file", default=None, metavar="FILE",
                        help="Also write log messages to FILE")
    parser.add_argument("--verbose", action="store_true",
                        help="Log every checked link")
    parser.add_argument("--skip", action="store_true",
                        help="Skip the link check and exit successfully")
    return parser


def main(argv=None):
    """Main function to run the dead links finder"""
    args = build_parser().parse_args(argv)

    if args.skip:
        print("⏭️  Skipping link check...")
        sys.exit(0)

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    config = load_config(args.config, overrides={'siteDir': args.site_dir})

    finder = DeadLinksFinder(config)
    try:
        exit_code = finder.run()
    except ReadError as e:
        print(f"❌ {e}")
        sys.exit(1)

    if args.json_report and finder.report is not None:
        finder.report.write_json(args.json_report)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
