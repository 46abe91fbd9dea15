import logging
from datetime import date

from tierboard.services.logger import get_logger, log_file_path, setup_logging


def test_log_file_is_named_per_day():
    path = log_file_path(date(2024, 5, 1))
    assert path.name == "tierboard_20240501.log"


def test_setup_is_idempotent():
    root = logging.getLogger()
    before = list(root.handlers)

    setup_logging()
    setup_logging()

    assert root.handlers == before
    assert logging.getLogger("discord").level == logging.WARNING


def test_get_logger_uses_module_name():
    assert get_logger("tierboard.services.placement_service").name == "tierboard.services.placement_service"
