import pytest

from reqchain.config import RequestSpec
from reqchain.errors import ConfigInvalid, InvalidBody, InvalidHeader, InvalidMethod
from reqchain.factory import DefaultRequestFactory
from reqchain.transport import CONTENT_TYPE_FORM, CONTENT_TYPE_JSON, CONTENT_TYPE_TEXT


@pytest.fixture
def factory() -> DefaultRequestFactory:
    return DefaultRequestFactory()


def test_create_from_config_json(factory, make_config):
    config = make_config([{
        "name": "create",
        "method": "POST",
        "path": "/users",
        "headers": ["X-Trace: 1", "Accept: application/json"],
        "json_body": '{"name": "x"}',
    }])
    request = factory.create_from_config(config, config.requests[0])
    assert request.url == "http://api.test/users"
    assert request.method == "POST"
    assert request.headers == {"X-Trace": "1", "Accept": "application/json"}
    assert request.body == b'{"name": "x"}'
    assert request.content_type == CONTENT_TYPE_JSON


@pytest.mark.parametrize(
    "field, value, content_type",
    [("form_body", "a=1&b=2", CONTENT_TYPE_FORM), ("raw_body", "plain text", CONTENT_TYPE_TEXT)],
)
def test_create_from_config_other_bodies(factory, make_config, field, value, content_type):
    config = make_config([{"name": "r", "method": "PUT", "path": "/", field: value}])
    request = factory.create_from_config(config, config.requests[0])
    assert request.body == value.encode()
    assert request.content_type == content_type


def test_body_ignored_for_get(factory, make_config):
    config = make_config([{"name": "r", "method": "GET", "path": "/", "raw_body": "ignored"}])
    request = factory.create_from_config(config, config.requests[0])
    assert request.body is None
    assert request.content_length == 0


def test_invalid_json_body(factory, make_config):
    config = make_config([{"name": "r", "method": "POST", "path": "/", "json_body": "{oops"}])
    with pytest.raises(InvalidBody):
        factory.create_from_config(config, config.requests[0])


def test_invalid_header(factory, make_config):
    config = make_config([{"name": "r", "method": "GET", "path": "/", "headers": ["no separator"]}])
    with pytest.raises(InvalidHeader):
        factory.create_from_config(config, config.requests[0])


def test_invalid_method(factory, make_config):
    config = make_config([{"name": "r", "method": "GET", "path": "/"}])
    spec = RequestSpec(name="r", method="FETCH", path="/")
    with pytest.raises(InvalidMethod):
        factory.create_from_config(config, spec)


def test_missing_config(factory):
    with pytest.raises(ConfigInvalid):
        factory.create_from_config(None, RequestSpec(name="r", method="GET", path="/"))


def test_create_simple(factory):
    request = factory.create_simple("http://x/y", "post", "Authorization: Bearer t", '{"a": 1}')
    assert request.method == "POST"
    assert request.headers == {"Authorization": "Bearer t"}
    assert request.body == b'{"a": 1}'
    assert request.content_type == CONTENT_TYPE_JSON

    get = factory.create_simple("http://x/y", "GET", "", '{"a": 1}')
    assert get.body is None and get.headers == {}

    with pytest.raises(InvalidMethod):
        factory.create_simple("http://x/y", "TRACE")
