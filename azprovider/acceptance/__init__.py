from azprovider.acceptance.check import compose
from azprovider.acceptance.data import TestData, build_test_data
from azprovider.acceptance.runner import TestStep

__all__ = ["TestData", "TestStep", "build_test_data", "compose"]
