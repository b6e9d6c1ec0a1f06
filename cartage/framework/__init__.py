"""Packaging framework: configuration, ignore patterns, plug-in protocol, run context.

Common entrypoints:

- `cartage.framework.runtime.Cartage`: the run context for one packaging job
- `cartage.framework.plugin`: plug-in registration and feature dispatch
- `cartage.framework.patterns`: `.cartignore` pattern compilation and pruning
"""
