"""Command line tool for inspecting and cleaning up brigade state."""
