"""setup-macports — install and configure MacPorts on macOS CI runners."""

__version__ = "0.1.0"
