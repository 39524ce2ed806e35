"""
Project initializer for tiergate in a component repository.

Creates the following structure:
    consumer-repo/
    └── .tiergate/
        ├── config.yaml      (aliases, workers, default severity/format)
        └── tiers.yaml       (only with --with-tiers: editable tier convention)

Usage:
    tiergate init                  # Initialize .tiergate/
    tiergate init --force          # Overwrite existing files
    tiergate init --with-tiers     # Also copy the tier convention for editing
"""
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from tiergate.analysis.tier_table import DEFAULT_CONVENTION
from tiergate.utils.config import DEFAULT_CONFIG, config_path_for
from tiergate.utils.repo import MARKER_DIR

logger = logging.getLogger(__name__)

TIERS_FILE = "tiers.yaml"


class ProjectInitializer:
    """Initialize tiergate structure in a consumer repo."""

    def __init__(self, target_dir: Optional[Path] = None):
        """
        Initialize the ProjectInitializer.

        Args:
            target_dir: Target directory for initialization. Defaults to cwd.
        """
        self.target_dir = target_dir or Path.cwd()
        self.config_dir = self.target_dir / MARKER_DIR
        self.config_file = config_path_for(self.target_dir)
        self.tiers_file = self.config_dir / TIERS_FILE

    def init(self, force: bool = False, with_tiers: bool = False) -> int:
        """
        Bootstrap .tiergate/ config.

        Args:
            force: If True, overwrite existing files.
            with_tiers: Copy the packaged tier convention into .tiergate/tiers.yaml
                and point config at it.

        Returns:
            0 on success, 1 on error.
        """
        if self.config_dir.exists() and not force:
            print(f"tiergate already initialized at {self.target_dir}")
            print("Use --force to reinitialize")
            return 1

        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            print(f"Created: {self.config_dir}")

            if with_tiers:
                shutil.copyfile(DEFAULT_CONVENTION, self.tiers_file)
                print(f"Created: {self.tiers_file}")

            self._create_config(with_tiers)
        except OSError as e:
            print(f"Error initializing tiergate: {e}")
            return 1

        print("\ntiergate initialized. Next steps:")
        print("  1. Adjust aliases in .tiergate/config.yaml to match your tsconfig paths")
        print("  2. Run: check-specs")
        return 0

    def _starter_config(self, with_tiers: bool) -> Dict[str, Any]:
        config = {
            "version": DEFAULT_CONFIG["version"],
            "aliases": dict(DEFAULT_CONFIG["aliases"]),
            "tsconfig": DEFAULT_CONFIG["tsconfig"],
            "workers": DEFAULT_CONFIG["workers"],
            "severity": DEFAULT_CONFIG["severity"],
            "format": DEFAULT_CONFIG["format"],
        }
        if with_tiers:
            config["tiers_file"] = f"{MARKER_DIR}/{TIERS_FILE}"
        return config

    def _create_config(self, with_tiers: bool) -> None:
        """Create .tiergate/config.yaml."""
        with open(self.config_file, "w", encoding="utf-8") as f:
            f.write("# tiergate configuration\n")
            f.write("# Keys not listed here fall back to packaged defaults.\n\n")
            yaml.dump(self._starter_config(with_tiers), f, default_flow_style=False, sort_keys=False)
        logger.debug("Wrote %s", self.config_file)
        print(f"Created: {self.config_file}")
