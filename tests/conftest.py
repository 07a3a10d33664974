"""Shared pytest fixtures."""

from pathlib import Path

import pytest
import pytest_asyncio

from planflow.config import Config
from planflow.plans.lifecycle import PlanLifecycle
from planflow.plans.store import PlanStore


@pytest.fixture
def config(tmp_path: Path) -> Config:
	cfg = Config(config_dir=tmp_path / "config", data_dir=tmp_path / "data")
	cfg.ensure_dirs()
	return cfg


@pytest_asyncio.fixture
async def store(tmp_path: Path):
	s = PlanStore(str(tmp_path / "plans.db"))
	await s.init()
	yield s
	await s.close()


@pytest_asyncio.fixture
async def lifecycle(store: PlanStore) -> PlanLifecycle:
	return PlanLifecycle(store)
