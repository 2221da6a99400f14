from __future__ import annotations

import os
from pathlib import Path


def _parse_line(raw: str) -> tuple[str, str] | None:
    line = raw.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    line = line.removeprefix("export ")
    key, _, value = line.partition("=")
    return key.strip(), value.strip().strip('"').strip("'")


def load_env_file_if_present(path: str | Path = ".env", override: bool = False) -> dict[str, str]:
    """Read ``KEY=VALUE`` lines from ``path`` into ``os.environ``.

    Meant for keeping MongoDB, S3 and CloudFront settings in a local ``.env``.
    Comments and an ``export`` prefix are tolerated and surrounding quotes are
    dropped. Variables already set in the environment are left alone unless
    ``override`` is true. Returns every pair found in the file.
    """
    env_path = Path(path)
    if not env_path.is_file():
        return {}

    loaded: dict[str, str] = {}
    for raw in env_path.read_text(encoding="utf-8").splitlines():
        pair = _parse_line(raw)
        if pair is None:
            continue
        key, value = pair
        if override or key not in os.environ:
            os.environ[key] = value
        loaded[key] = value
    return loaded
