from __future__ import annotations

import os

from sqlalchemy import Connection

from migrations.seed.seed_steps import SEED_STEPS

_TRUTHY = {"1", "true", "yes", "on"}


def run_seed_steps(connection: Connection) -> None:
    if os.getenv("SEED_DEMO_DATA", "").strip().lower() not in _TRUTHY:
        return
    for seed in SEED_STEPS:
        seed(connection)
