"""
R package queries and installation. Stateless - no caching.
"""

import multiprocessing
import platform
from typing import List, Optional, Union, cast

from brmskit.config import get_settings
from brmskit.helpers.log import log, log_warning

# === Queries ===


def get_package_version(name: str) -> str | None:
    """Get installed package version or None."""
    import rpy2.robjects as ro

    try:
        expr = f"""
        v <- utils::packageDescription('{name}', fields = 'Version')
        if (is.na(v)) stop('Package not found')
        v
        """
        v_str = cast(List, ro.r(expr))[0]
        return str(v_str)
    except Exception:
        return None


def is_package_installed(name: str) -> bool:
    """Check if package is installed."""
    from rpy2.robjects.packages import isinstalled

    try:
        return isinstalled(name)
    except Exception:
        return False


def get_r_version() -> str | None:
    """Version of the embedded R, e.g. "4.4.1"."""
    import rpy2.robjects as ro

    try:
        return str(cast(List, ro.r("as.character(getRversion())"))[0])
    except Exception:
        return None


# === Installation ===


def set_cran_mirror(mirror: str | None = None) -> None:
    """
    Set the CRAN mirror of the R session.

    Defaults to the configured mirror (``BRMSKIT_CRAN_MIRROR``).
    """
    import rpy2.robjects as ro

    if mirror is None:
        mirror = get_settings().cran_mirror
    ro.r(f'options(repos = c(CRAN = "{mirror}"))')


def _get_linux_repo() -> str:
    """Get Posit Package Manager URL for Linux binaries."""
    try:
        with open("/etc/os-release") as f:
            lines = f.readlines()

        codename = "jammy"  # Ubuntu 22.04
        for line in lines:
            if line.startswith("VERSION_CODENAME="):
                codename = line.strip().split("=")[1].strip('"')
                break

        return f"https://packagemanager.posit.co/cran/__linux__/{codename}/latest"
    except FileNotFoundError:
        return "https://packagemanager.posit.co/cran/__linux__/jammy/latest"


def _normalize_version(version: str | None) -> str | None:
    if version is None:
        return None
    v = version.strip()
    if v == "" or v.lower() in ("latest", "any"):
        return None
    return v


def install_package(
    name: str,
    version: str | None = None,
    repos_extra: Optional[Union[str, List[str]]] = None,
) -> None:
    """
    Install a single R package.

    Uses ``remotes::install_version`` if a version is given (``"2.23.0"`` or a
    requirement such as ``">= 2.21.0"``), otherwise ``utils::install.packages``.
    Packages that are already installed are left alone unless a version is
    requested.
    """
    import rpy2.robjects as ro
    from rpy2.robjects.packages import importr
    from rpy2.robjects.vectors import StrVector

    version = _normalize_version(version)
    system = platform.system()
    cores = multiprocessing.cpu_count()

    repos: list[str] = [get_settings().cran_mirror]
    if repos_extra:
        extra = repos_extra if isinstance(repos_extra, list) else [repos_extra]
        for repo in extra:
            if isinstance(repo, str) and repo not in repos:
                repos.append(repo)

    if system == "Linux":
        repos.insert(0, _get_linux_repo())
        preferred_type = "source"
    else:
        preferred_type = "binary"

    if version is not None:
        ro.r(
            'if (!requireNamespace("remotes", quietly = TRUE)) '
            f'install.packages("remotes", repos = "{repos[-1]}")'
        )
        ro.globalenv[".brmskit_repos"] = StrVector(repos)
        v_escaped = version.replace('"', '\\"')
        log(f"Installing {name} {version}...")
        try:
            ro.r(
                f"remotes::install_version("
                f'package = "{name}", '
                f'version = "{v_escaped}", '
                f"repos = .brmskit_repos)"
            )
        finally:
            del ro.globalenv[".brmskit_repos"]
        return

    if is_package_installed(name):
        return

    log(f"Installing {name}...")
    utils = importr("utils")
    try:
        utils.install_packages(
            StrVector((name,)),
            repos=StrVector(repos),
            type=preferred_type,
            Ncpus=cores,
        )
    except Exception as e:
        log_warning(f"Installing {name} as {preferred_type} failed ({e}), retrying from source")
        utils.install_packages(
            StrVector((name,)),
            repos=StrVector(repos),
            Ncpus=cores,
        )


def build_cmdstan(cores: int | None = None) -> None:
    """Build CmdStan via cmdstanr::install_cmdstan()."""
    import rpy2.robjects as ro

    if cores is None:
        cores = multiprocessing.cpu_count()
        if cores > 4:
            cores -= 1

    ro.r("library(cmdstanr)")

    if platform.system() == "Windows":
        try:
            ro.r("cmdstanr::check_cmdstan_toolchain(fix = TRUE)")
        except Exception as e:
            raise RuntimeError(
                "Windows toolchain check failed. "
                "Please install Rtools from https://cran.r-project.org/bin/windows/Rtools/"
            ) from e

    log("Building CmdStan...")
    ro.r(f"cmdstanr::install_cmdstan(cores = {int(cores)}, overwrite = FALSE)")


def get_cmdstan_path() -> str | None:
    """Path of the CmdStan installation used by cmdstanr, or None."""
    import rpy2.robjects as ro

    if not is_package_installed("cmdstanr"):
        return None
    try:
        return str(
            cast(List, ro.r("suppressWarnings(suppressMessages(cmdstanr::cmdstan_path()))"))[0]
        )
    except Exception:
        return None
