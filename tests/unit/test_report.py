import io

from rich.console import Console

from reqchain.errors import InvalidHeader, InvalidURL, RequestCreation, RequestExecution
from reqchain.report import (
    ReqResult,
    ResultRecorder,
    help_message,
    print_error,
    print_response,
    print_summary,
    truncate_value,
)
from reqchain.transport import HttpResponse


def make_console() -> Console:
    return Console(file=io.StringIO(), width=120, color_system=None)


def output(console: Console) -> str:
    return console.file.getvalue()


def test_truncate_value():
    assert truncate_value("short") == "short"
    long_value = "x" * 60
    assert truncate_value(long_value) == "x" * 47 + "..."


def test_recorder_prints_results_and_variables():
    console = make_console()
    recorder = ResultRecorder(console)

    recorder("auth", "POST", "http://api.test/auth", 200, None, 0.012, {"token": "t" * 60})
    recorder("profile", "GET", "http://api.test/profile", 0, RequestExecution("refused"), 0.003)

    text = output(console)
    assert "auth | POST http://api.test/auth [200]" in text
    assert "token = " + "t" * 47 + "..." in text
    assert "profile | GET http://api.test/profile" in text
    assert "refused" in text
    assert [r.success for r in recorder.results] == [True, False]


def test_summary_counts():
    console = make_console()
    print_summary([
        ReqResult(name="a", method="GET", url="u", status_code=200, duration=0.1),
        ReqResult(name="b", method="GET", url="u", success=False, duration=0.2),
    ], console)
    text = output(console)
    assert "Total Requests:" in text and "2" in text
    assert "Successful:" in text and "Failed:" in text
    assert "300ms" in text


def test_print_response_sorts_headers_and_indents_json():
    console = make_console()
    response = HttpResponse.from_bytes(200, b'{"a":1}', {"X-B": "2", "Content-Type": "application/json"}, "OK")

    print_response(response, console)

    text = output(console)
    assert "Status: 200 OK" in text
    assert text.index("Content-Type") < text.index("X-B")
    assert '  "a": 1' in text
    assert response.body.read() == b'{"a":1}'


def test_help_message_follows_cause_chain():
    try:
        try:
            raise InvalidHeader("invalid header format: x")
        except InvalidHeader as inner:
            raise RequestCreation("failed to create request") from inner
    except RequestCreation as outer:
        assert "Key: Value" in help_message(outer)
    assert help_message(ValueError("other")) == ""


def test_print_error_panel():
    console = make_console()
    print_error(InvalidURL("invalid URL: nope"), console)
    text = output(console)
    assert "ERROR: invalid URL: nope" in text
    assert "HELP:" in text
    assert "reqchain --help" in text

    quiet = make_console()
    print_error(None, quiet)
    assert output(quiet) == ""


def test_print_response_leaves_non_json_content_type_raw():
    console = make_console()
    response = HttpResponse.from_bytes(200, b'{"a":1}', {"content-type": "text/plain"})

    print_response(response, console)

    text = output(console)
    assert '{"a":1}' in text
    assert '  "a": 1' not in text


def test_response_header_lookup_ignores_case():
    response = HttpResponse.from_bytes(200, headers={"content-type": "application/json"})
    assert response.header("Content-Type") == "application/json"
    assert response.header("X-Missing") == ""
    assert response.header("X-Missing", "none") == "none"
