"""Shared pytest configuration for the layoutkit tests."""


def pytest_configure(config):
    """Report test ids without file paths, matching the describe_* block names."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False
