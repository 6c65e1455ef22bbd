"""
bundlesplit: device-targeted APK generation from modular app bundles.

Partitions each module of an app bundle into master and configuration splits,
assembles them into installable variants, and resolves the exact set of APKs
a given device needs.
"""

__version__ = "0.4.0"
__author__ = "bundlesplit maintainers"
