"""
brmskit runtime management.

Public API:
- status: Query R, brms and Stan backend availability
- install_brms: Install brms and a Stan backend into the R library
- install_package: Install any other R package (bridgesampling, mice...)
- get_brms_version: Installed brms version
"""

from dataclasses import dataclass

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from brmskit.helpers import singleton
from brmskit.helpers.log import log, log_warning
from brmskit.runtime import _r_packages
from brmskit.runtime._r_packages import install_package, set_cran_mirror

__all__ = [
    "RuntimeStatus",
    "status",
    "install_brms",
    "install_package",
    "get_brms_version",
    "set_cran_mirror",
    "MIN_BRMS_VERSION",
]

# brms::stancode / brms::standata need this release
MIN_BRMS_VERSION = "2.21.0"


@dataclass(frozen=True)
class RuntimeStatus:
    """
    Availability of R and the R packages brmskit uses.

    Attributes
    ----------
    r_available : bool
        rpy2 could start an embedded R session
    r_version : str, optional
    brms_version, cmdstanr_version, rstan_version : str, optional
        Installed versions, None when missing
    cmdstan_path : str, optional
        CmdStan installation used by cmdstanr
    """

    r_available: bool
    r_version: str | None = None
    brms_version: str | None = None
    cmdstanr_version: str | None = None
    rstan_version: str | None = None
    cmdstan_path: str | None = None

    @property
    def brms_supported(self) -> bool:
        """True when the installed brms is at least `MIN_BRMS_VERSION`."""
        return _version_satisfies(self.brms_version, f">={MIN_BRMS_VERSION}")

    @property
    def has_backend(self) -> bool:
        return bool(self.cmdstan_path) or self.rstan_version is not None


def _version_satisfies(version: str | None, requirement: str) -> bool:
    """
    Check an installed R package version against a requirement.

    R versions like ``"2.23.0"`` or ``"1.0-3"`` are accepted; ``-`` is read
    as ``.``.

    Examples
    --------
    >>> _version_satisfies("2.22.0", ">=2.21.0")
    True
    >>> _version_satisfies(None, ">=2.21.0")
    False
    """
    if version is None:
        return False
    try:
        parsed = Version(version.replace("-", "."))
        spec = SpecifierSet(requirement.replace(" ", ""))
    except (InvalidVersion, InvalidSpecifier):
        log_warning(f"Cannot compare version {version!r} with {requirement!r}")
        return False
    return parsed in spec


def status() -> RuntimeStatus:
    """
    Query the current runtime. No side effects beyond starting R.

    Returns ``RuntimeStatus(r_available=False)`` when rpy2 cannot load R.
    """
    try:
        import rpy2.robjects  # noqa: F401
    except Exception as e:
        log_warning(f"R is not available: {e}")
        return RuntimeStatus(r_available=False)

    return RuntimeStatus(
        r_available=True,
        r_version=_r_packages.get_r_version(),
        brms_version=_r_packages.get_package_version("brms"),
        cmdstanr_version=_r_packages.get_package_version("cmdstanr"),
        rstan_version=_r_packages.get_package_version("rstan"),
        cmdstan_path=_r_packages.get_cmdstan_path(),
    )


def get_brms_version() -> str | None:
    """Get installed brms version."""
    return _r_packages.get_package_version("brms")


def install_brms(
    brms_version: str | None = None,
    install_cmdstanr: bool = True,
    install_rstan: bool = False,
    cmdstanr_version: str | None = None,
    rstan_version: str | None = None,
) -> RuntimeStatus:
    """
    Install brms R package, optionally cmdstanr and CmdStan compiler, or rstan.

    Parameters
    ----------
    brms_version : str, optional
        brms version: None / "latest", "2.23.0", or ">= 2.21.0"
    install_cmdstanr : bool, default=True
        Whether to install cmdstanr and build CmdStan
    install_rstan : bool, default=False
        Whether to install rstan (alternative to cmdstanr)
    cmdstanr_version, rstan_version : str, optional
        Versions of the backends

    Returns
    -------
    RuntimeStatus
        Status after installation
    """
    set_cran_mirror()

    install_package("brms", version=brms_version)
    install_package("posterior")
    install_package("loo")

    if install_cmdstanr:
        install_package(
            "cmdstanr",
            version=cmdstanr_version,
            repos_extra="https://stan-dev.r-universe.dev",
        )
        _r_packages.build_cmdstan()

    if install_rstan:
        install_package("rstan", version=rstan_version)

    singleton._invalidate_singletons()
    result = status()
    if not result.brms_supported:
        log_warning(
            f"Installed brms {result.brms_version} is older than {MIN_BRMS_VERSION}; "
            "make_stancode() and make_standata() need a newer brms"
        )
    log(f"brms {result.brms_version} ready")
    return result
