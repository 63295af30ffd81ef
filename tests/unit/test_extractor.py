import io

import pytest

from reqchain.context import RunContext
from reqchain.errors import NilResponse, PathNotFound, ReadResponseBody, ResponseTooLarge, RunCancelled
from reqchain.extractor import PathExtractor, VariableExtractor, split_path, to_string
from reqchain.transport import HttpResponse


@pytest.fixture
def ctx() -> RunContext:
    return RunContext.background()


def test_split_path():
    assert split_path("data.items[0].id") == ["data", "items", 0, "id"]
    assert split_path("data.items.0.id") == ["data", "items", "0", "id"]
    assert split_path(r"a\.b.c") == ["a.b", "c"]
    with pytest.raises(ValueError):
        split_path("a..b")


@pytest.mark.parametrize(
    "path, expected",
    [
        ("name", ("test", True)),
        ("age", ("30", True)),
        ("ratio", ("0.5", True)),
        ("whole", ("2", True)),
        ("active", ("true", True)),
        ("nothing", ("", True)),
        ("user.id", ("7", True)),
        ("items.1.id", ("b", True)),
        ("items[0].id", ("a", True)),
        ("items.#", ("2", True)),
        ("user", ('{"id":7}', True)),
        (r"dotted\.key", ("yes", True)),
        ("missing.path", ("", False)),
        ("items.5.id", ("", False)),
    ],
)
def test_path_extractor(path, expected):
    body = (
        '{"name":"test","age":30,"ratio":0.5,"whole":2.0,"active":true,"nothing":null,'
        '"user":{"id":7},"items":[{"id":"a"},{"id":"b"}],"dotted.key":"yes"}'
    )
    assert PathExtractor().extract(body, path) == expected


def test_path_extractor_invalid_json():
    assert PathExtractor().extract("not json", "a") == ("", False)


def test_to_string_array():
    assert to_string([1, "x", False]) == '[1,"x",false]'


def test_extract_variables(ctx):
    response = HttpResponse.from_bytes(200, b'{"name":"test","age":30}')
    variables = VariableExtractor().extract_variables(ctx, response, {"username": "name", "userAge": "age"})
    assert variables == {"username": "test", "userAge": "30"}
    # body is readable again after extraction
    assert response.body.read() == b'{"name":"test","age":30}'


def test_extract_variables_missing_path(ctx):
    response = HttpResponse.from_bytes(200, b'{"name":"test","age":30}')
    with pytest.raises(PathNotFound, match="missing.path"):
        VariableExtractor().extract_variables(ctx, response, {"x": "missing.path"})


def test_extract_variables_nil_response(ctx):
    with pytest.raises(NilResponse):
        VariableExtractor().extract_variables(ctx, None, {"x": "a"})
    with pytest.raises(NilResponse):
        VariableExtractor().extract_variables(ctx, HttpResponse(status_code=200), {"x": "a"})


def test_response_too_large(ctx):
    response = HttpResponse.from_bytes(200, b'{"a":"' + b"x" * 64 + b'"}')
    with pytest.raises(ResponseTooLarge):
        VariableExtractor(max_body_size=16).extract_variables(ctx, response, {"a": "a"})


def test_read_failure(ctx):
    class BrokenStream(io.RawIOBase):
        def read(self, size=-1):
            raise OSError("connection reset")

    response = HttpResponse(status_code=200, body=BrokenStream())
    with pytest.raises(ReadResponseBody):
        VariableExtractor().extract_variables(ctx, response, {"a": "a"})


def test_cancelled_context():
    ctx = RunContext()
    ctx.cancel()
    with pytest.raises(RunCancelled):
        VariableExtractor().extract_variables(ctx, HttpResponse.from_bytes(200, b"{}"), {"a": "a"})
