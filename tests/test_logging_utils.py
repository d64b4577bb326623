import logging

from commit_composer.logging_utils import configure_logging, level_for_verbosity


def test_verbosity_maps_to_levels():
    assert level_for_verbosity(-1) == logging.WARNING
    assert level_for_verbosity(0) == logging.WARNING
    assert level_for_verbosity(1) == logging.INFO
    assert level_for_verbosity(2) == logging.DEBUG
    assert level_for_verbosity(5) == logging.DEBUG


def test_http_request_logging_is_quiet_below_debug():
    configure_logging(1)
    assert logging.getLogger("httpx").level == logging.WARNING

    configure_logging(2)
    assert logging.getLogger("httpx").level == logging.DEBUG
