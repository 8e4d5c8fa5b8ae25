import pytest

from opset import EndpointOperations, FormattingError, OperationSet


@pytest.fixture
def endpoint() -> EndpointOperations:
    return EndpointOperations(
        description="user endpoint",
        request={
            "params": [{"$wrap": "one"}, {"$wrap": []}, {"$wrap": "two"}],
            "query": {"$copy": {"user.name": "user.full_name", "user.age": "age"}},
            "body": {
                "$unset": "oldParam",
                "$set": {"newParam": True},
                "$func": lambda obj: {**obj, "name": obj["name"].upper()},
            },
            "headers": {
                "$set": {"": {"Content-Type": "text/plain", "Authorization": "Bearer 12345"}}
            },
        },
        response={
            "body": [
                {"$wrap": "result"},
                {
                    "$map": {
                        "result.code": {
                            "200": "OK",
                            "404": "NOT FOUND",
                            "500": "ERROR",
                            "": "UNKNOWN",
                        }
                    }
                },
            ],
            "headers": {"$move": {"x-auth": "Authorization"}},
        },
        error={
            "body": {"$cast": {"cast": "number"}},
            "headers": {"$set": {"": {"header1": "3"}}},
        },
    )


def test_endpoint__formats_request_headers(endpoint):
    headers = {"header1": 1, "header2": 2, "header3": 3}

    assert endpoint.request("headers").process(headers) == {
        "Content-Type": "text/plain",
        "Authorization": "Bearer 12345",
    }


def test_endpoint__formats_request_body(endpoint):
    body = {"oldParam": "useless", "name": "billy billy"}

    assert endpoint.request("body").process(body) == {
        "name": "BILLY BILLY",
        "newParam": True,
    }


def test_endpoint__formats_request_query(endpoint):
    query = {"user": {"name": "Billy Billy", "age": 705}}

    assert endpoint.request("query").process(query) == {
        "age": 705,
        "user": {"name": "Billy Billy", "full_name": "Billy Billy", "age": 705},
    }


def test_endpoint__formats_request_params(endpoint):
    assert endpoint.request("params").process({"test": True}) == {
        "two": [{"one": {"test": True}}]
    }


def test_endpoint__formats_response(endpoint):
    assert endpoint.response("body").process({"code": 404}) == {
        "result": {"code": "NOT FOUND"}
    }
    assert endpoint.response("headers").process(
        {"Content-Type": "text/plain", "x-auth": "Bearer 12345"}
    ) == {"Content-Type": "text/plain", "Authorization": "Bearer 12345"}


def test_endpoint__formats_error(endpoint):
    assert endpoint.error("body").process({"cast": "8"}) == {"cast": 8}
    assert endpoint.error("headers").process({"eyy": "ohh"}) == {"header1": "3"}


def test_endpoint__returns_all_mediums_without_name(endpoint):
    mediums = endpoint.request()

    assert sorted(mediums) == ["body", "headers", "params", "query"]
    assert all(isinstance(value, OperationSet) for value in mediums.values())


def test_endpoint__unconfigured_medium_is_empty_set():
    endpoint = EndpointOperations()

    assert endpoint.response("body").process({"a": 1}) == {"a": 1}


def test_endpoint__rejects_unknown_medium_lookup(endpoint):
    with pytest.raises(KeyError):
        endpoint.response("query")


def test_endpoint__rejects_unknown_medium_config():
    with pytest.raises(FormattingError):
        EndpointOperations(response={"query": {"$set": {}}})


def test_endpoint__rejects_malformed_operations():
    with pytest.raises(FormattingError):
        EndpointOperations(request={"body": {"$bogus": 1}})


def test_endpoint__mediums_share_registered_procedures():
    endpoint = EndpointOperations(response={"body": {"$model": {".": "testFunc"}}})

    endpoint.set_procedure("testFunc", lambda obj: {**obj, "isTestSuccessful": True})

    assert endpoint.response("body").process({"testCode": 5}) == {
        "testCode": 5,
        "isTestSuccessful": True,
    }
    assert endpoint.request("body").registry is endpoint.registry
