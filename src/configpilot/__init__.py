"""
ConfigPilot: poll-based continuous delivery for a single repository.

Watches a GitHub repository (optionally a subpath of it) for new
commits. When one lands, the repository is checked out fresh, any
SOPS-encrypted files are decrypted in place, and a deployment script
runs against the resulting tree.
"""

import os

__version__ = "0.1.0"

CONFIG_PATH = os.environ.get("CONFIG_PATH", "config.yaml")
