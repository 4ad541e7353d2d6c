"""Command-line tools for inspecting subnet fund snapshots."""
