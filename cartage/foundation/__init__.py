"""Low-level helpers with no knowledge of plug-ins: errors, config files, logging, processes."""
