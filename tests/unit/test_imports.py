"""
Import validation tests.

These tests ensure all modules can be imported successfully, catching
issues like missing dependencies or circular imports BEFORE deployment.

Run with: pytest tests/unit/test_imports.py -v
"""

import importlib
from pathlib import Path

import pytest

SRC_PATH = Path(__file__).parent.parent.parent / "src"


class TestHandlerImports:
    """Verify all handler modules can be imported without errors."""

    @pytest.mark.parametrize("module_name,entry_point", [
        ("handlers.main", "lambda_handler"),
        ("handlers.health_check", "lambda_handler"),
        ("handlers.carts", "abandoned_handler"),
        ("handlers.carts", "bulk_recovery_handler"),
        ("handlers.chat", "lambda_handler"),
        ("handlers.recommendations", "lambda_handler"),
        ("handlers.offers", "redeem_handler"),
        ("handlers.interactions", "lambda_handler"),
        ("handlers.analytics", "lambda_handler"),
        ("handlers.jobs", "recover_carts"),
    ])
    def test_handler_import(self, module_name: str, entry_point: str):
        """Each handler module should import and expose its entry point."""
        try:
            module = importlib.import_module(module_name)
            assert hasattr(module, entry_point), f"{module_name} missing {entry_point}"
        except ImportError as e:
            pytest.fail(f"Failed to import {module_name}: {e}")


class TestServiceImports:
    """Verify all service modules can be imported."""

    @pytest.mark.parametrize("module_name", [
        "services.recommendation_service",
        "services.segmentation_service",
        "services.offer_service",
        "services.recovery_state_machine",
        "services.cart_recovery_service",
        "services.email_service",
        "services.intent_dispatcher",
        "services.chat_service",
        "services.interaction_service",
        "services.reporting_service",
        "services.job_service",
    ])
    def test_service_import(self, module_name: str):
        try:
            importlib.import_module(module_name)
        except ImportError as e:
            pytest.fail(f"Failed to import {module_name}: {e}")


class TestModelImports:
    """Verify all model modules can be imported."""

    @pytest.mark.parametrize("module_name", [
        "models",
        "models.cart",
        "models.conversation",
        "models.customer",
        "models.discount",
        "models.interaction",
        "models.jobs",
        "models.product",
        "models.report",
    ])
    def test_model_import(self, module_name: str):
        try:
            importlib.import_module(module_name)
        except ImportError as e:
            pytest.fail(f"Failed to import {module_name}: {e}")


class TestUtilImports:
    """Verify utility and repository modules can be imported."""

    @pytest.mark.parametrize("module_name", [
        "utils.logging_config",
        "utils.cache_service",
        "utils.clock",
        "utils.error_handling",
        "utils.validators",
        "repositories.database",
        "repositories.cart_repo",
        "repositories.discount_repo",
        "config.settings",
    ])
    def test_util_import(self, module_name: str):
        try:
            importlib.import_module(module_name)
        except ImportError as e:
            pytest.fail(f"Failed to import {module_name}: {e}")


class TestNoSrcPrefix:
    """Ensure no modules use 'from src.' imports (breaks in Lambda)."""

    @pytest.mark.parametrize("package", [
        "config", "handlers", "models", "repositories", "services", "utils",
    ])
    def test_no_src_prefix(self, package: str):
        for py_file in (SRC_PATH / package).glob("*.py"):
            content = py_file.read_text()
            assert "from src." not in content, f"{py_file.name} contains 'from src.' import"
            assert "import src." not in content, f"{py_file.name} contains 'import src.' import"
