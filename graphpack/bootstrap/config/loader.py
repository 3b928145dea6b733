import os
from pathlib import Path

CONFIGFILE_ENV = "GRAPHPACKCONFIG"


def get_configfile() -> Path | None:
    raw = os.getenv(CONFIGFILE_ENV)
    if not raw:
        return None

    file = Path(raw)
    if not file.is_file():
        raise FileNotFoundError(
            f"[config] Configuration file not found: '{file}'.\n"
            f"  - Fix or unset the {CONFIGFILE_ENV} environment variable."
        )

    return file
