"""
Test framework for RESTful API testing using 4-layer architecture.
"""

from .adapters import RecordingAdapter
from .dsl import RestApiDsl, HttpRequest, HttpResponse
from .drivers import AsgiDriver, DirectDriver, DriverInterface
from .multi_driver_base import MultiDriverTestBase, multi_driver_test_class

__all__ = [
    'RestApiDsl',
    'HttpRequest',
    'HttpResponse',
    'DriverInterface',
    'DirectDriver',
    'AsgiDriver',
    'MultiDriverTestBase',
    'multi_driver_test_class',
    'RecordingAdapter',
]
