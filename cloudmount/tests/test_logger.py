import logging

import cloudmount.logger as logger


def test_summarize_matching_length():
    assert logger.summarize("abc", max_length=3) == "abc"


def test_summarize_exceeding_length():
    assert logger.summarize("abcdef", max_length=5) == "ab..."


def test_summarize_list():
    x = [1, 2, 3, 4, 5]
    assert logger.summarize(x, max_length=6) == "[1,..."


def test_level_from_verbosity():
    assert logger.level_from_verbosity(0) == logging.ERROR
    assert logger.level_from_verbosity(1) == logging.WARNING
    assert logger.level_from_verbosity(2) == logging.INFO
    assert logger.level_from_verbosity(3) == logging.DEBUG
    assert logger.level_from_verbosity(4) == logger.TRACE
    assert logger.level_from_verbosity(10) == logger.TRACE
    assert logger.level_from_verbosity(-1) == logging.WARNING


def test_trace_level_name():
    assert logging.getLevelName(logger.TRACE) == "TRACE"
    assert logger.TRACE < logging.DEBUG
