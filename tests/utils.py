"""
Helper functions to make writing unit tests for restcore easier
"""

import os
import sys
import random
import string
import unittest
import subprocess
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, Union

import httpx
import pydantic
from fastapi.testclient import TestClient

from restcore import schemas as _schemas, settings as _settings
from restcore.api.api import create_app
from restcore.persistence import database
from restcore.persistence.access import DataAccess
from restcore.version import LATEST_API_VERSION

from . import conf


PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _nonce() -> str:
    return "".join([random.choice(string.ascii_lowercase) for _ in range(6)])


class BaseTest(unittest.TestCase):
    """
    A base class for unit tests which introduces simple setup and teardown of unit tests

    If a subclass needs special setup or teardown functionality, it **MUST**
    call the superclasses setup and teardown methods: the superclass setup
    method at the beginning of the subclass setup method, the superclass
    teardown method at the end of the subclass teardown method.
    """

    config_file: Optional[str] = None
    database_url: Optional[str] = None
    _database_file: Optional[str] = None
    _previous_config_paths: Optional[List[str]] = None

    def setUp(self) -> None:
        self.config_file = conf.CONFIG_FILE_FORMAT.format(os.getpid(), _nonce())
        self._previous_config_paths = _settings.CONFIG_PATHS
        _settings.CONFIG_PATHS = [self.config_file]
        database.PRINT_SQLITE_WARNING = False

        if conf.DATABASE_URL is not None:
            self.database_url = conf.DATABASE_URL

        else:
            self._database_file = conf.DATABASE_DEFAULT_FILE_FORMAT.format(os.getpid(), _nonce())

            try:
                open(self._database_file, "wb").close()
                os.remove(self._database_file)
                self.database_url = conf.DATABASE_URL_FORMAT.format(self._database_file)

            except OSError as exc:
                self.database_url = conf.DATABASE_FALLBACK_URL
                self._database_file = None
                print(
                    f"{exc}: Falling back to in-memory database. This is not recommended!",
                    file=sys.stderr
                )

        database.init(self.database_url, conf.SQLALCHEMY_ECHOING)

    def tearDown(self) -> None:
        database.get_engine().dispose()
        if self.database_url != conf.DATABASE_FALLBACK_URL and self._database_file:
            if os.path.exists(self._database_file):
                os.remove(self._database_file)

        if self.config_file and os.path.exists(self.config_file):
            os.remove(self.config_file)
        _settings.CONFIG_PATHS = self._previous_config_paths

    def make_settings(self, **kwargs) -> _settings.Settings:
        """
        Create new settings for the current test database (keyword arguments overwrite top-level keys)
        """

        values = {"database": {"connection": self.database_url, "debug_sql": conf.SQLALCHEMY_ECHOING}}
        values.update(kwargs)
        return _settings.Settings(**values)


class BaseAPITests(BaseTest):
    """
    Base class for tests of the REST API, using an in-process client without a real server

    Set the ``resources`` attribute in subclasses to run the tests in strict mode.
    Failures of the server are returned as responses instead of being raised.
    """

    api_version_format: str = "/api/v{}"
    latest_api_version: int = LATEST_API_VERSION

    resources: List[dict] = []
    app = None
    client: Optional[TestClient] = None

    def get_store(self) -> Optional[DataAccess]:
        return None

    def setUp(self) -> None:
        super().setUp()
        self.settings = self.make_settings(resources=self.resources)
        self.app = create_app(
            settings=self.settings,
            store=self.get_store(),
            configure_logging=False,
            configure_database=False
        )
        self.client = TestClient(self.app, raise_server_exceptions=False)

    def tearDown(self) -> None:
        self.client.close()
        super().tearDown()

    def assertQuery(
            self,
            endpoint: Union[Tuple[str, str], Tuple[str, str, int]],
            status_code: Union[int, Iterable[int]] = 200,
            json: Optional[Union[dict, list, pydantic.BaseModel]] = None,
            content: Optional[Union[str, bytes]] = None,
            headers: Optional[dict] = None,
            r_is_json: bool = True,
            r_headers: Optional[Union[Mapping, Iterable]] = None,
            r_schema: Optional[Type[pydantic.BaseModel]] = None,
            no_version: bool = False,
            **kwargs
    ) -> httpx.Response:
        """
        Do a query to the specified endpoint and return the response

        Besides also carrying the optional JSON data, headers and other keyword arguments,
        this function asserts that the response has the specified status code. Furthermore,
        the optional asserted response headers and asserted response schema can be used,
        where the headers are either an iterable to only assert certain keys or a mapping
        to also assert values, and the schema is a schema class the response must satisfy.

        :param endpoint: tuple of the method, the path of the endpoint and the
            optional API version (uses the latest version if omitted by default)
        :param status_code: asserted status code(s) of the final server's response
        :param json: optional dictionary, list or model holding the request data
        :param content: optional raw request body (used instead of the JSON data)
        :param headers: optional set of headers to sent in the request
        :param r_is_json: switch to check that the response contains JSON data
        :param r_headers optional set of headers which are asserted in the response
        :param r_schema: optional class of a response schema to be asserted
        :param no_version: don't add the version prefix to the path of the endpoint
        :param kwargs: dict of any further keyword arguments, passed to ``TestClient.request``
        :return: response to the requested resource
        """

        if len(endpoint) == 3:
            method, path, api_version = endpoint
        else:
            method, path = endpoint
            api_version = self.latest_api_version

        if not path.startswith("/"):
            path = "/" + path
        if isinstance(json, pydantic.BaseModel):
            json = json.model_dump()

        prefix = "" if no_version else self.api_version_format.format(api_version)
        if content is not None:
            kwargs["content"] = content
        elif json is not None:
            kwargs["json"] = json
        response = self.client.request(method.upper(), prefix + path, headers=headers, **kwargs)

        if isinstance(status_code, int):
            self.assertEqual(status_code, response.status_code, response.text)
        elif isinstance(status_code, Iterable):
            self.assertTrue(
                response.status_code in status_code,
                (response.text, response.status_code, status_code)
            )

        if r_headers is not None:
            for k in (r_headers if isinstance(r_headers, Iterable) else r_headers.keys()):
                self.assertIsNotNone(response.headers.get(k), response.headers)
                if isinstance(r_headers, Mapping):
                    self.assertEqual(r_headers[k], response.headers.get(k), response.headers)

        if r_is_json:
            try:
                self.assertIsNotNone(response.json())
            except ValueError:
                self.fail(("No JSON content detected", response.headers, response.text))

        if r_schema is not None:
            self.assertTrue(r_schema(**response.json()), response.json())

        return response

    def assertError(
            self,
            endpoint: Union[Tuple[str, str], Tuple[str, str, int]],
            error_code: _schemas.ErrorCode,
            status_code: int = 400,
            **kwargs
    ) -> Dict[str, Any]:
        """
        Do a query that is expected to fail and assert the status code and the error code of the response
        """

        response = self.assertQuery(endpoint, status_code, r_schema=_schemas.APIError, **kwargs)
        error = response.json()
        self.assertEqual(int(error_code), error["errorCode"], error)
        self.assertEqual(status_code, error["status"], error)
        self.assertTrue(error["moreInfo"].endswith(f"/{int(error_code)}"), error)
        self.assertTrue(error["developerMessage"], error)
        return error

    def assertEnvelope(
            self,
            response: httpx.Response,
            count: int,
            offset: int,
            limit: int,
            length: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Assert the result set metadata of a collection envelope and return its results
        """

        body = response.json()
        self.assertEqual({"metadata", "results"}, set(body.keys()), body)
        self.assertEqual({"count": count, "offset": offset, "limit": limit}, body["metadata"]["resultset"])
        self.assertGreaterEqual(body["metadata"]["resultset"]["count"], len(body["results"]))
        if length is not None:
            self.assertEqual(length, len(body["results"]), body["results"])
        return body["results"]


class BaseCLITests(BaseTest):
    """
    Base class for tests running the command-line interface in a subprocess
    """

    def get_environment(self, **kwargs: str) -> Dict[str, str]:
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(filter(None, [PROJECT_ROOT, env.get("PYTHONPATH")]))
        env["CONFIG_PATH"] = self.config_file
        env.update(kwargs)
        return env

    def _run_cmd(
            self,
            exit_code: int,
            *args: str,
            timeout: float = conf.CLI_COMMAND_TIMEOUT,
            **env: str
    ) -> subprocess.CompletedProcess:
        process = subprocess.run(
            [sys.executable, "-m", "restcore", *args],
            env=self.get_environment(**env),
            cwd=PROJECT_ROOT,
            capture_output=True,
            timeout=timeout,
            text=True
        )
        self.assertEqual(
            exit_code,
            process.returncode,
            f"{' STDERR '.center(80, '=')}\n{process.stderr}\n{' STDOUT '.center(80, '=')}\n{process.stdout}"
        )
        return process
