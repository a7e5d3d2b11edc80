"""Imports every activity and workflow module so their decorators register them."""

import importlib

DISCOVERED_MODULES = (
    "istory.temporal.activities.verification",
    "istory.temporal.activities.analysis",
    "istory.temporal.workflows.verification_dispatch",
    "istory.temporal.workflows.metadata_backfill",
)


def discover_all() -> None:
    for module_name in DISCOVERED_MODULES:
        importlib.import_module(module_name)
