"""
brmskit - Bayesian multilevel models in Python with R's brms.

The model functions live in `brmskit.brms`, which is imported on first
access so that ``import brmskit`` stays cheap and does not start R:

```python
from brmskit import brms

fit = brms.brm("y ~ x + (1|g)", data=df)
```
"""

from typing import TYPE_CHECKING

from brmskit.types.errors import BrmsError, BrmsNotInstalledError, BrmsWarning

if TYPE_CHECKING:
    from brmskit import brms, runtime

__version__ = "0.3.0"
__license__ = "Apache-2.0"

__all__ = [
    "brms",
    "runtime",
    "install_brms",
    "BrmsError",
    "BrmsNotInstalledError",
    "BrmsWarning",
    "__version__",
]


def install_brms(*args, **kwargs):
    """Install brms and a Stan backend; see `brmskit.runtime.install_brms`."""
    from brmskit.runtime import install_brms as _install_brms

    return _install_brms(*args, **kwargs)


def __getattr__(name: str):
    if name in ("brms", "runtime"):
        import importlib

        module = importlib.import_module(f"brmskit.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module 'brmskit' has no attribute {name!r}")
