from importlib.metadata import PackageNotFoundError, version


def package_version() -> str:
    try:
        return version("php-switch")
    except PackageNotFoundError:
        return "0.0.0+dev"
