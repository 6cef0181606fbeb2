"""Configure pytest environment for all tests."""

import logging

import pytest

from tfpluginschema.config.logs import ROOT_LOGGER


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo ``configure_logging`` so caplog keeps seeing package records."""

    yield
    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True
    root.setLevel(logging.NOTSET)
