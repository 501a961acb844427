"""Shared fixtures for the storysearch test suite.

Most fixtures install the sample corpus from ``utils.build_sample_data``
into a temporary data directory.
"""

import logging
import os
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings
from utils import StoryDataGenerator, build_sample_data

from storysearch.catalog import StoryCatalog

# Tokenizer and normalization property tests; pick a profile with HYPOTHESIS_PROFILE
settings.register_profile("dev", max_examples=25)
settings.register_profile("ci", max_examples=150, verbosity=Verbosity.verbose)
settings.register_profile(
    "debug", max_examples=10, verbosity=Verbosity.verbose, phases=[Phase.explicit, Phase.generate]
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


def pytest_configure(config):
    """Register the markers used across the suite."""
    for marker in (
        "unit: fast tests of a single component",
        "integration: tests that exercise a real index backend end to end",
        "cli: tests that drive the storysearch command line",
    ):
        config.addinivalue_line("markers", marker)


@pytest.fixture
def story_data(tmp_path: Path) -> StoryDataGenerator:
    """Install the sample story corpus under a temporary data directory."""
    return build_sample_data(tmp_path / "data")


@pytest.fixture
def data_dir(story_data: StoryDataGenerator) -> Path:
    return story_data.data_dir


@pytest.fixture
def story_catalog(data_dir: Path) -> StoryCatalog:
    """Provide a catalog over the sample corpus."""
    return StoryCatalog(data_dir)


@pytest.fixture
def empty_catalog(tmp_path: Path) -> StoryCatalog:
    """Provide a catalog over a directory without installed content."""
    return StoryCatalog(tmp_path / "not-installed")


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch):
    """Keep configuration discovery away from the developer's own files."""
    workdir = tmp_path / "workdir"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("STORYSEARCH_CONFIG", raising=False)
    return workdir


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo handler changes made by ``configure_logging`` in CLI runs."""
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in list(root.handlers):
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
