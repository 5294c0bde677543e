"""Command-line-interface to read and write PLY camera metadata.

For licensing see accompanying LICENSE file.
Copyright (C) 2025 Apple Inc. All Rights Reserved.
"""

import click

from . import inspect, stamp, viewer_settings


@click.group()
def main_cli():
    """Read and write camera metadata in Gaussian Splat PLY files."""
    pass


main_cli.add_command(inspect.inspect_cli, "inspect")
main_cli.add_command(viewer_settings.viewer_settings_cli, "viewer-settings")
main_cli.add_command(stamp.stamp_cli, "stamp")
