"""Basic tests for pyCastAutomation."""

from importlib.metadata import version

import pyCastAutomation


def test_version():
    """Test that the package version matches the installed metadata."""
    assert isinstance(pyCastAutomation.__version__, str)
    assert pyCastAutomation.__version__ == version("pyCastAutomation")


def test_public_api():
    """The main entry points are re-exported at package level."""
    for name in (
        "AccessoryConfig",
        "CastAccessory",
        "CastSupervisor",
        "ControlChannel",
        "DiscoveryBrowser",
        "PyChromecastChannel",
        "ZeroconfBrowser",
        "load_config",
    ):
        assert hasattr(pyCastAutomation, name), name
