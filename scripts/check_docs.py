"""Check the guide's Markdown for broken snippets and links.

Parses every Python block, tokenises every shell block and resolves every
relative link in README.md and docs/. With --external, http(s) links are
requested as well.

Usage:
    python scripts/check_docs.py --root . [--external]
"""

import argparse
import sys
from pathlib import Path

from guide_common.doccheck import check_tree
from guide_common.logging import configure_logging


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for the documentation check."""
    parser = argparse.ArgumentParser(description="Check guide documentation")
    parser.add_argument("--root", type=Path, default=Path("."), help="Repository root")
    parser.add_argument("--external", action="store_true", help="Also request http(s) links")
    parser.add_argument("--log-level", type=str, default="WARNING", help="Log level")
    return parser.parse_args()


def main() -> int:
    """Run the checks and print one line per issue."""
    args = parse_args()
    configure_logging(args.log_level, "console")
    issues = check_tree(args.root, external=args.external)
    for issue in issues:
        print(issue)
    if issues:
        print(f"{len(issues)} issue(s) found", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
