"""``cron-workflow`` command-line interface."""

from cron_workflow.cli.app import app

__all__ = ["app"]
