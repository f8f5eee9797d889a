"""
restcore unit tests for the whole API in certain client actions
"""

import unittest as _unittest
from typing import List

from restcore import schemas as _schemas
from restcore.persistence.access import StorageError
from restcore.persistence.store import DatabaseStore
from restcore.schemas import ErrorCode

from . import utils


class APITests(utils.BaseAPITests):
    def _create_magazines(self, n: int, path: str = "/magazines") -> List[str]:
        response = self.assertQuery(("POST", path), json=[{"title": f"Magazine {i}", "number": i} for i in range(n)])
        ids = [obj["id"] for obj in response.json()]
        self.assertEqual(n, len(ids))
        return ids

    def test_basic_endpoints_and_redirects_to_docs(self):
        for _ in range(8):
            self.assertEqual({}, self.assertQuery(("GET", "/health")).json())

        self.assertError(("GET", "/"), ErrorCode.UNKNOWN_ENDPOINT, follow_redirects=False)
        self.assertIn("docs", self.assertQuery(
            ("GET", "/"),
            [302, 303, 307],
            follow_redirects=False,
            r_is_json=False,
            no_version=True
        ).headers.get("Location"))

        openapi = self.assertQuery(("GET", "/openapi.json"), r_headers={"Content-Type": "application/json"}).json()
        for operations in openapi["paths"].values():
            for metadata in operations.values():
                self.assertNotIn("422", metadata.get("responses", {}))
        self.assertQuery(("GET", "/openapi.json"), r_headers={"Content-Type": "application/json"}, no_version=True)

    def test_versions_and_status(self):
        versions = self.assertQuery(("GET", "/versions"), r_schema=_schemas.Versions, no_version=True).json()
        self.assertEqual(2, versions["latest"])
        self.assertEqual(
            [{"version": 1, "prefix": "/api/v1"}, {"version": 2, "prefix": "/api/v2"}],
            versions["versions"]
        )

        for version in (1, 2):
            status = self.assertQuery(("GET", "/status", version), r_schema=_schemas.Status).json()
            self.assertEqual(version, status["api_version"])

        general = self.assertQuery(("GET", "/settings")).json()
        self.assertEqual(10, general["default_limit"])
        self.assertEqual(1000, general["max_limit"])

    def test_pagination(self):
        self._create_magazines(227)
        results = self.assertEnvelope(
            self.assertQuery(("GET", "/magazines?limit=10&offset=25")),
            count=227, offset=25, limit=10, length=10
        )
        self.assertEqual("Magazine 25", results[0]["title"])
        self.assertEqual("Magazine 34", results[-1]["title"])

        self.assertEnvelope(
            self.assertQuery(("GET", "/magazines?limit=10&offset=220")),
            count=227, offset=220, limit=10, length=7
        )
        self.assertEnvelope(
            self.assertQuery(("GET", "/magazines?offset=500")),
            count=227, offset=500, limit=10, length=0
        )
        self.assertEnvelope(
            self.assertQuery(("GET", "/magazines?limit=1000")),
            count=227, offset=0, limit=1000, length=227
        )

    def test_default_limit_with_format_suffix(self):
        self._create_magazines(123)
        self.assertEnvelope(self.assertQuery(("GET", "/magazines.json")), count=123, offset=0, limit=10, length=10)
        self.assertEnvelope(self.assertQuery(("GET", "/magazines")), count=123, offset=0, limit=10, length=10)

    def test_empty_collection(self):
        self.assertEnvelope(self.assertQuery(("GET", "/magazines")), count=0, offset=0, limit=10, length=0)
        self.assertEnvelope(self.assertQuery(("GET", "/people")), count=0, offset=0, limit=10, length=0)

    def test_create_then_read(self):
        body = {
            "title": "Foo",
            "pages": 42,
            "price": 4.2,
            "active": True,
            "editor": None,
            "details": {"language": "en", "topics": [1, 2, 3]}
        }
        identifier = self.assertQuery(("POST", "/magazines"), json=body, r_schema=_schemas.CreatedInstance).json()["id"]
        self.assertIsInstance(identifier, str)

        instance = self.assertQuery(("GET", f"/magazines/{identifier}")).json()
        self.assertEqual(identifier, instance["id"])
        for key, value in body.items():
            self.assertEqual(value, instance[key], key)

        self.assertEqual(instance, self.assertQuery(("GET", f"/magazines/{identifier}.json")).json())
        self.assertEqual(instance, self.assertQuery(("GET", f"/magazines/{identifier}", 1)).json())

    def test_unknown_identifier(self):
        self._create_magazines(2)
        self.assertError(("GET", "/magazines/1234"), ErrorCode.NOT_FOUND)
        self.assertError(("GET", "/magazines/1234.json"), ErrorCode.NOT_FOUND)
        self.assertError(("DELETE", "/magazines/1234"), ErrorCode.NOT_FOUND)
        self.assertError(("GET", "/magazines/1234/articles"), ErrorCode.NOT_FOUND)
        self.assertError(("POST", "/magazines/1234/articles"), ErrorCode.NOT_FOUND, json={"title": "x"})
        self.assertError(("GET", "/articles/1"), ErrorCode.NOT_FOUND)

    def test_put_creates_and_is_idempotent(self):
        body = {"title": "Bar", "tags": ["news"]}
        first = self.assertQuery(("PUT", "/magazines/bar-2023"), json=body).json()
        self.assertEqual("bar-2023", first["id"])
        second = self.assertQuery(("PUT", "/magazines/bar-2023"), json=body).json()
        self.assertEqual(first, second)
        self.assertEqual(first, self.assertQuery(("GET", "/magazines/bar-2023")).json())
        self.assertEnvelope(self.assertQuery(("GET", "/magazines")), count=1, offset=0, limit=10, length=1)

        updated = self.assertQuery(("PUT", "/magazines/bar-2023"), json={"id": "bar-2023", "title": "Baz"}).json()
        self.assertEqual({"id": "bar-2023", "title": "Baz"}, updated)
        self.assertError(("PUT", "/magazines/bar-2023"), ErrorCode.VALIDATION_FAILED, json={"id": "other"})

    def test_labels_are_arrays(self):
        identifier = self.assertQuery(
            ("POST", "/magazines"),
            json={"title": "Foo", "tags": ["red", {"id": 2, "name": "blue"}, {"id": "3"}]}
        ).json()["id"]
        instance = self.assertQuery(("GET", f"/magazines/{identifier}")).json()
        self.assertEqual(
            [{"id": "red", "name": "red"}, {"id": "2", "name": "blue"}, {"id": "3", "name": "3"}],
            instance["tags"]
        )
        results = self.assertQuery(("GET", "/magazines")).json()["results"]
        self.assertEqual(instance["tags"], results[0]["tags"])

        self.assertError(
            ("POST", "/magazines"),
            ErrorCode.VALIDATION_FAILED,
            json={"title": "Bar", "tags": {"1": "red", "2": "blue"}}
        )
        self.assertError(("POST", "/magazines"), ErrorCode.VALIDATION_FAILED, json={"labels": "red"})
        self.assertError(("POST", "/magazines"), ErrorCode.VALIDATION_FAILED, json={"tags": [{"foo": "bar"}]})

        self.assertEnvelope(self.assertQuery(("GET", "/magazines?tags=blue")), count=1, offset=0, limit=10)
        self.assertEnvelope(self.assertQuery(("GET", "/magazines?tags=2")), count=1, offset=0, limit=10)
        self.assertEnvelope(self.assertQuery(("GET", "/magazines?tags=green")), count=0, offset=0, limit=10)

    def test_sub_collections(self):
        self.assertQuery(("PUT", "/magazines/1234"), json={"title": "Foo"})
        response = self.assertQuery(("POST", "/magazines/1234/articles"), json=[{"title": "First article"}])
        created = response.json()
        self.assertEqual(1, len(created))
        article = created[0]["id"]

        results = self.assertEnvelope(
            self.assertQuery(("GET", "/magazines/1234/articles")),
            count=1, offset=0, limit=10, length=1
        )
        self.assertEqual(article, results[0]["id"])
        self.assertEqual("First article", self.assertQuery(("GET", f"/articles/{article}")).json()["title"])

        second = self.assertQuery(("POST", "/magazines/1234/articles"), json={"title": "Second"}).json()["id"]
        self.assertNotEqual(article, second)
        self.assertEnvelope(self.assertQuery(("GET", "/magazines/1234/articles")), count=2, offset=0, limit=10)
        self.assertEnvelope(self.assertQuery(("GET", "/articles")), count=2, offset=0, limit=10)

        self.assertQuery(("PUT", "/magazines/5678"), json={"title": "Bar"})
        self.assertEnvelope(self.assertQuery(("GET", "/magazines/5678/articles")), count=0, offset=0, limit=10)

        deleted = self.assertQuery(("DELETE", "/magazines/1234")).json()
        self.assertEqual({"id": "1234", "title": "Foo"}, deleted)
        self.assertError(("GET", f"/articles/{article}"), ErrorCode.NOT_FOUND)
        self.assertError(("GET", f"/articles/{second}"), ErrorCode.NOT_FOUND)

    def test_replace_and_delete_collections(self):
        self._create_magazines(5)
        results = self.assertEnvelope(
            self.assertQuery(("PUT", "/magazines"), json=[{"title": "a"}, {"id": "b", "title": "b"}]),
            count=2, offset=0, limit=2, length=2
        )
        self.assertEqual(["a", "b"], [r["title"] for r in results])
        self.assertEqual("b", results[1]["id"])
        self.assertEnvelope(self.assertQuery(("GET", "/magazines")), count=2, offset=0, limit=10)

        self.assertError(("PUT", "/magazines"), ErrorCode.MALFORMED_BODY, json={"title": "c"})
        self.assertError(("PUT", "/magazines"), ErrorCode.VALIDATION_FAILED, json=[{"title": "c"}, 42])
        self.assertError(
            ("PUT", "/magazines"),
            ErrorCode.VALIDATION_FAILED,
            json=[{"id": "x", "title": "c"}, {"id": "x", "title": "d"}]
        )
        self.assertEnvelope(self.assertQuery(("GET", "/magazines")), count=2, offset=0, limit=10)

        self.assertEqual({"count": 1}, self.assertQuery(("DELETE", "/magazines?title=a")).json())
        self.assertEqual({"count": 0}, self.assertQuery(("DELETE", "/magazines?title=a")).json())
        self.assertEqual({"count": 1}, self.assertQuery(("DELETE", "/magazines")).json())
        self.assertEnvelope(self.assertQuery(("GET", "/magazines")), count=0, offset=0, limit=10)

    def test_filters_and_fields(self):
        self.assertQuery(("POST", "/magazines"), json=[
            {"title": "Foo", "pages": 42, "active": True},
            {"title": "Bar", "pages": 42, "active": False},
            {"title": "Baz", "pages": 7, "active": True, "editor": None}
        ])

        self.assertEnvelope(self.assertQuery(("GET", "/magazines?pages=42")), count=2, offset=0, limit=10)
        self.assertEnvelope(self.assertQuery(("GET", "/magazines?pages=42&active=true")), count=1, offset=0, limit=10)
        self.assertEnvelope(self.assertQuery(("GET", "/magazines?active=True")), count=2, offset=0, limit=10)
        self.assertEnvelope(self.assertQuery(("GET", "/magazines?editor=null")), count=3, offset=0, limit=10)
        self.assertEnvelope(self.assertQuery(("GET", "/magazines?title=Qux")), count=0, offset=0, limit=10)

        results = self.assertQuery(("GET", "/magazines?fields=title")).json()["results"]
        self.assertEqual([{"id": "1", "title": "Foo"}, {"id": "2", "title": "Bar"}, {"id": "3", "title": "Baz"}], results)
        self.assertEqual({"id": "2", "pages": 42}, self.assertQuery(("GET", "/magazines/2?fields=pages,unknown")).json())

    def test_formats(self):
        self._create_magazines(3)
        self.assertQuery(("PUT", "/magazines/3"), json={"title": "Tagged", "tags": ["a", "b"]})

        response = self.assertQuery(
            ("GET", "/magazines.csv?limit=2&offset=1"),
            r_is_json=False,
            r_headers={"X-Resultset-Count": "3", "X-Resultset-Offset": "1", "X-Resultset-Limit": "2"}
        )
        self.assertTrue(response.headers["Content-Type"].startswith("text/csv"))
        lines = response.text.strip().splitlines()
        self.assertEqual("id,title,number,tags", lines[0].strip())
        self.assertEqual(3, len(lines))
        self.assertEqual("3,Tagged,,a;b", lines[2].strip())

        response = self.assertQuery(("GET", "/magazines.html"), r_is_json=False, r_headers=["X-Resultset-Count"])
        self.assertTrue(response.headers["Content-Type"].startswith("text/html"))
        self.assertIn("<table>", response.text)
        self.assertIn("a;b", response.text)

        response = self.assertQuery(("GET", "/magazines/1.csv"), r_is_json=False)
        self.assertIn("Magazine 0", response.text)
        self.assertNotIn("X-Resultset-Count", response.headers)

        self.assertQuery(("PUT", "/magazines/7"), json={"metadata": {"resultset": {"count": 1}}, "results": [1, 2]})
        for suffix in ("csv", "html"):
            response = self.assertQuery(("GET", f"/magazines/7.{suffix}"), r_is_json=False)
            self.assertIn("results", response.text)
            self.assertNotIn("X-Resultset-Count", response.headers)
        self.assertEqual([1, 2], self.assertQuery(("GET", "/magazines/7")).json()["results"])

    def test_malformed_requests(self):
        self._create_magazines(1)
        self.assertError(("GET", "/magazines/1/articles/2"), ErrorCode.MALFORMED_PATH)
        self.assertError(("GET", "/magazines/1/articles/2/comments"), ErrorCode.MALFORMED_PATH)
        self.assertError(("GET", "/magazine"), ErrorCode.MALFORMED_PATH)
        self.assertError(("GET", "/Magazines"), ErrorCode.MALFORMED_PATH)
        self.assertError(("GET", "/magazines/1/article"), ErrorCode.MALFORMED_PATH)
        self.assertError(("GET", "/magazines/a%20b"), ErrorCode.MALFORMED_PATH)
        self.assertQuery(("GET", "/magazines/"), 400, r_schema=_schemas.APIError)

        self.assertError(("GET", "/magazines?limit=0"), ErrorCode.MALFORMED_QUERY)
        self.assertError(("GET", "/magazines?limit=1001"), ErrorCode.MALFORMED_QUERY)
        self.assertError(("GET", "/magazines?limit=abc"), ErrorCode.MALFORMED_QUERY)
        self.assertError(("GET", "/magazines?offset=-1"), ErrorCode.MALFORMED_QUERY)
        self.assertError(("GET", "/magazines?fields=title,,pages"), ErrorCode.MALFORMED_QUERY)

        self.assertError(("POST", "/magazines"), ErrorCode.MALFORMED_BODY, content="{invalid")
        self.assertError(("POST", "/magazines"), ErrorCode.MALFORMED_BODY, content="")
        for constant in ("NaN", "Infinity", "-Infinity"):
            self.assertError(("POST", "/magazines"), ErrorCode.MALFORMED_BODY, content=f'{{"title": {constant}}}')
            self.assertError(("PUT", "/magazines/1"), ErrorCode.MALFORMED_BODY, content=f'{{"pages": {constant}}}')
        self.assertEnvelope(self.assertQuery(("GET", "/magazines")), count=1, offset=0, limit=10)
        self.assertEqual("Magazine 0", self.assertQuery(("GET", "/magazines/1")).json()["title"])
        self.assertError(("POST", "/magazines"), ErrorCode.MALFORMED_BODY, json=[])
        self.assertError(("POST", "/magazines"), ErrorCode.VALIDATION_FAILED, json=42)
        self.assertError(("POST", "/magazines"), ErrorCode.VALIDATION_FAILED, json={"id": "7", "title": "x"})
        self.assertError(("POST", "/magazines"), ErrorCode.VALIDATION_FAILED, json={"": "x"})

        self.assertError(("POST", "/magazines/1"), ErrorCode.METHOD_NOT_SUPPORTED, json={"title": "x"})
        self.assertError(("PATCH", "/magazines"), ErrorCode.METHOD_NOT_SUPPORTED, json={"title": "x"})
        self.assertError(("PATCH", "/magazines/1"), ErrorCode.METHOD_NOT_SUPPORTED, json={"title": "x"})
        self.assertError(("POST", "/health"), ErrorCode.MALFORMED_PATH)

        self.assertError(("GET", "/magazines", 3), ErrorCode.UNKNOWN_ENDPOINT)
        self.assertError(("GET", "/foo/bar"), ErrorCode.UNKNOWN_ENDPOINT, no_version=True)

    def test_array_creation_is_atomic(self):
        self.assertError(
            ("POST", "/magazines"),
            ErrorCode.VALIDATION_FAILED,
            json=[{"title": "ok"}, {"title": "bad", "id": "1"}]
        )
        self.assertEnvelope(self.assertQuery(("GET", "/magazines")), count=0, offset=0, limit=10)

    def test_resource_discovery(self):
        self._create_magazines(3)
        self.assertQuery(("PUT", "/people/alice"), json={"name": "Alice"})

        results = self.assertEnvelope(self.assertQuery(("GET", "/resources", 2)), count=2, offset=0, limit=2)
        self.assertEqual(
            [
                {"name": "magazines", "count": 3, "declared": False, "description": None},
                {"name": "people", "count": 1, "declared": False, "description": None}
            ],
            results
        )

    def test_api_version_1_still_servable(self):
        ids = self._create_magazines(4)
        self.assertEnvelope(self.assertQuery(("GET", "/magazines?limit=2", 1)), count=4, offset=0, limit=2, length=2)
        self.assertEqual("Magazine 1", self.assertQuery(("GET", f"/magazines/{ids[1]}", 1)).json()["title"])
        self.assertEqual({}, self.assertQuery(("GET", "/health", 1)).json())

        response = self.assertQuery(("POST", "/magazines", 1), json={"title": "v1"})
        self.assertEqual("v1", self.assertQuery(("GET", f"/magazines/{response.json()['id']}", 2)).json()["title"])


class StrictModeAPITests(utils.BaseAPITests):
    resources = [
        {
            "name": "magazines",
            "description": "Printed magazines",
            "required": ["title"],
            "labels": ["tags"],
            "default_subresource": "articles"
        },
        {
            "name": "articles",
            "parents": ["magazines"]
        },
        {
            "name": "person",
            "labels": []
        }
    ]

    def test_unknown_resources(self):
        self.assertError(("GET", "/books"), ErrorCode.UNKNOWN_RESOURCE)
        self.assertError(("POST", "/books"), ErrorCode.UNKNOWN_RESOURCE, json={"title": "x"})
        self.assertEnvelope(self.assertQuery(("GET", "/person")), count=0, offset=0, limit=10)

    def test_required_properties(self):
        self.assertError(("POST", "/magazines"), ErrorCode.VALIDATION_FAILED, json={"name": "Foo"})
        self.assertError(("POST", "/magazines"), ErrorCode.VALIDATION_FAILED, json={"title": None})
        self.assertError(("PUT", "/magazines/1"), ErrorCode.VALIDATION_FAILED, json={})
        self.assertQuery(("POST", "/magazines"), json={"title": "Foo"})
        self.assertQuery(("POST", "/articles"), json={})

    def test_nesting_rules(self):
        self.assertQuery(("PUT", "/magazines/1"), json={"title": "Foo"})
        self.assertQuery(("PUT", "/articles/1"), json={"headline": "Bar"})
        self.assertQuery(("POST", "/magazines/1/articles"), json={"headline": "Baz"})
        self.assertError(("GET", "/articles/1/magazines"), ErrorCode.UNKNOWN_RESOURCE)
        self.assertError(("GET", "/magazines/1/person"), ErrorCode.UNKNOWN_RESOURCE)

    def test_default_subresource(self):
        self.assertQuery(("PUT", "/magazines/1"), json={"title": "Foo"})
        created = self.assertQuery(("POST", "/magazines/1"), json={"headline": "Default"}).json()
        results = self.assertEnvelope(self.assertQuery(("GET", "/magazines/1/articles")), count=1, offset=0, limit=10)
        self.assertEqual(created["id"], results[0]["id"])
        self.assertError(("POST", "/articles/1"), ErrorCode.METHOD_NOT_SUPPORTED, json={})

    def test_declared_labels(self):
        identifier = self.assertQuery(("POST", "/magazines"), json={"title": "Foo", "tags": ["x"], "labels": "y"}).json()["id"]
        instance = self.assertQuery(("GET", f"/magazines/{identifier}")).json()
        self.assertEqual([{"id": "x", "name": "x"}], instance["tags"])
        self.assertEqual("y", instance["labels"])

    def test_resource_discovery(self):
        self.assertQuery(("POST", "/magazines"), json=[{"title": "Foo"}, {"title": "Bar"}])
        results = self.assertEnvelope(self.assertQuery(("GET", "/resources")), count=3, offset=0, limit=3)
        self.assertEqual(["magazines", "articles", "person"], [r["name"] for r in results])
        self.assertEqual([2, 0, 0], [r["count"] for r in results])
        self.assertTrue(all(r["declared"] for r in results))
        self.assertEqual("Printed magazines", results[0]["description"])


class _FailingStore(DatabaseStore):
    def list(self, resource, filters, limit, offset, parent=None):
        if resource == "storages":
            raise StorageError("the storage is on fire")
        raise RuntimeError("the collaborator is broken")


class ServerErrorAPITests(utils.BaseAPITests):
    def get_store(self) -> DatabaseStore:
        return _FailingStore()

    def test_internal_errors(self):
        error = self.assertError(("GET", "/magazines"), ErrorCode.INTERNAL_ERROR, status_code=500)
        self.assertIsNotNone(error["userMessage"])
        self.assertError(("GET", "/magazines.csv"), ErrorCode.INTERNAL_ERROR, status_code=500)
        self.assertError(("GET", "/storages"), ErrorCode.STORAGE_FAILURE, status_code=500)

    def test_other_operations_unaffected(self):
        self.assertQuery(("POST", "/magazines"), json={"title": "Foo"})
        self.assertEqual("Foo", self.assertQuery(("GET", "/magazines/1")).json()["title"])
        self.assertEqual({}, self.assertQuery(("GET", "/health")).json())


if __name__ == '__main__':
    _unittest.main()
