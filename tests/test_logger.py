"""Tests for the storefront logging setup."""

import logging

from storefront.utils.logger import configure_logging, get_logger


class TestLogger:
    def test_child_loggers_share_namespace(self):
        assert get_logger("cart.store").name == "storefront.cart.store"
        assert get_logger().name == "storefront"

    def test_configure_is_idempotent(self):
        root = configure_logging("debug")
        try:
            handlers = list(root.handlers)
            configure_logging("WARNING")
            assert root.handlers == handlers
            assert root.level == logging.WARNING
            assert not root.propagate
        finally:
            configure_logging("INFO")
