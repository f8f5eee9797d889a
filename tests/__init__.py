"""
restcore unit tests
"""

import unittest
from .test_api import APITests, ServerErrorAPITests, StrictModeAPITests
from .test_cli import ServerCLITests, StandaloneCLITests
from .test_envelope import EnvelopeTests, ErrorFormatterTests, LabelTests
from .test_misc import DependencyTests, RegistryTests, SettingsTests, VersioningTests
from .test_persistence import DatabaseStoreTests, FilterMatchingTests
from .test_routing import QueryTests, RoutingTests


TEST_CLASSES = [
    APITests,
    DatabaseStoreTests,
    DependencyTests,
    EnvelopeTests,
    ErrorFormatterTests,
    FilterMatchingTests,
    LabelTests,
    QueryTests,
    RegistryTests,
    RoutingTests,
    ServerCLITests,
    ServerErrorAPITests,
    SettingsTests,
    StandaloneCLITests,
    StrictModeAPITests,
    VersioningTests,
]


def get_suite() -> unittest.TestSuite:
    suite = unittest.TestSuite()
    for cls in TEST_CLASSES:
        for fixture in filter(lambda f: f.startswith("test_"), dir(cls)):
            suite.addTest(cls(fixture))
    return suite
