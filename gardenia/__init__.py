"""
gardenia keeps GitHub-hosted plugins in sync with their primary branch.

This package is responsible for:
* Reading the plugin declaration into a flat list of bundles.
* Remembering which commit of each bundle is installed.
* Downloading and installing only the bundles whose branch tip moved.
* Removing installs of bundles that are no longer declared.
"""

__version__ = "0.1.0"
