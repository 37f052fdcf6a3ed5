"""Device Registrar - drives messaging-app phone registration on a remote device."""

# Application version (SemVer)
__version__ = "1.0.0"
__license__ = "MIT"

__all__ = ["__version__"]
