import logging

from docsign.logging import configure_logging


class TestConfigureLogging:
    def test_explicit_level(self):
        configure_logging("debug")
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("pypdf").level == logging.ERROR

    def test_level_from_settings(self):
        configure_logging()
        assert logging.getLogger().level == logging.INFO
