"""Top-level package for storyflow.

Provides subpackages:
- storyflow.layout – fit search, placement sessions, pagination, stabilization
- storyflow.output – document sinks, link resolution, debug overlays
- storyflow.controller – one-call pipelines (write with links, render html)
"""

def _get_version() -> str:
    """Get version from pyproject.toml (dev) or importlib.metadata (installed)."""
    from pathlib import Path

    pyproject = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        try:
            content = pyproject.read_text()
            for line in content.splitlines():
                if line.strip().startswith("version"):
                    # Parse: version = "0.3.0"
                    return line.split("=")[1].strip().strip('"').strip("'")
        except OSError:
            pass

    # Fallback to importlib.metadata for installed package
    try:
        from importlib.metadata import version as pkg_version
        return pkg_version("storyflow")
    except Exception:
        return "0.0.0"

__version__ = _get_version()
__copyright__ = "Copyright 2026 storyflow contributors"
__all__: list[str] = ["__version__"]
