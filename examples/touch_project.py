"""
Rewrite an Xcode project in canonical form.

Opens the given `.xcodeproj` bundle, optionally sorts its groups, targets and
configurations and replaces random uuids with predictable ones, then saves
it back. Useful for keeping generated projects stable under version control.
"""

import argparse
import logging
from pathlib import Path

from pbxgraph import Project

logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Rewrite an Xcode project in canonical form")
    parser.add_argument("project", type=Path, help="Path to the .xcodeproj bundle")
    parser.add_argument("--sort", action="store_true", help="Sort groups, targets and configurations")
    parser.add_argument("--predictable-uuids", action="store_true", help="Derive uuids from object paths")
    parser.add_argument("--verbose", action="store_true", help="Log every registration")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    project = Project.open(args.project)
    if args.sort:
        project.sort()
    if args.predictable_uuids:
        project.predictabilize_uuids()
    document = project.save()
    logger.info(f"Wrote {document}")


if __name__ == "__main__":
    main()
