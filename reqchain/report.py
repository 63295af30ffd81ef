# report.py

import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from rich.console import Console
from rich.json import JSON as RichJSON
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from reqchain.errors import (
    ConfigInvalid,
    InvalidBody,
    InvalidHeader,
    InvalidMethod,
    InvalidURL,
    ReadResponseBody,
    RequestCreation,
    RequestExecution,
    caused_by,
)
from reqchain.transport import HttpResponse

MAX_VARIABLE_DISPLAY = 50

stdout_console = Console()
stderr_console = Console(stderr=True)

# Checked in order; the first class found in the cause chain picks the help line.
_HELP_MESSAGES = (
    (InvalidURL, "The URL format is invalid. Make sure it includes scheme (http:// or https://) and host."),
    (InvalidMethod, "Invalid HTTP method. Supported methods are: GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS."),
    (ConfigInvalid, "The configuration file is not valid or could not be loaded. Check the file format and required fields."),
    (InvalidHeader, "Invalid header format. Headers must be in the format 'Key: Value'."),
    (InvalidBody, "Invalid request body. Check the format of your JSON, form, or raw body."),
    (ReadResponseBody, "Failed to read the response. The server may have returned an invalid response."),
    (RequestCreation, "Failed to create the HTTP request. Check your request parameters."),
    (RequestExecution, "Failed to execute the HTTP request. Check your network connection and the server status."),
)

# Errors the user can usually fix by changing the command line.
_USAGE_ERRORS = (InvalidURL, InvalidMethod, InvalidHeader, InvalidBody)


@dataclass
class ReqResult:
    name: str
    method: str
    url: str
    status_code: int = 0
    duration: float = 0.0 # seconds
    success: bool = True
    error: Optional[BaseException] = None
    variables: Dict[str, str] = field(default_factory=dict)


def status_style(result: ReqResult) -> str:
    if not result.success:
        return "bold red"
    if 200 <= result.status_code < 300:
        return "green"
    return "yellow"


def format_request_result(result: ReqResult) -> Text:
    """One line per request: name | METHOD url [status] (duration) error."""
    line = Text()
    if result.name:
        line.append(result.name, style="bold cyan")
        line.append(" | ")
    line.append(result.method, style="bold magenta")
    line.append(f" {result.url}")
    if result.status_code > 0:
        line.append(f" [{result.status_code}]", style=status_style(result))
    if result.duration > 0:
        line.append(f" ({result.duration * 1000:.0f}ms)", style="dim")
    if not result.success and result.error is not None:
        line.append(f" {result.error}", style="red")
    return line


def truncate_value(value: str, limit: int = MAX_VARIABLE_DISPLAY) -> str:
    if len(value) > limit:
        return value[:limit - 3] + "..."
    return value


def print_request_result(result: ReqResult, console: Optional[Console] = None):
    (console or stdout_console).print(format_request_result(result))


def print_variables(variables: Dict[str, str], console: Optional[Console] = None):
    if not variables:
        return
    console = console or stdout_console
    console.print("  Extracted variables:", style="blue")
    for name in sorted(variables):
        line = Text("    ")
        line.append(name, style="bold cyan")
        line.append(f" = {truncate_value(variables[name])}")
        console.print(line)
    console.print()


def build_summary(results: List[ReqResult]) -> Table:
    succeeded = sum(1 for r in results if r.success)
    total_time = sum(r.duration for r in results)

    table = Table(title="SUMMARY", show_header=False, title_justify="left")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Total Requests:", str(len(results)))
    table.add_row("Successful:", Text(str(succeeded), style="green"))
    table.add_row("Failed:", Text(str(len(results) - succeeded), style="red"))
    table.add_row("Total Time:", f"{total_time * 1000:.0f}ms")
    return table


def print_summary(results: List[ReqResult], console: Optional[Console] = None):
    if not results:
        return
    console = console or stdout_console
    console.print()
    console.print(build_summary(results))
    console.print()


def print_response(response: HttpResponse, console: Optional[Console] = None):
    """Status line, sorted headers and the body (indented when the Content-Type is JSON)."""
    console = console or stdout_console
    status = Text(f"Status: {response.status_code}")
    if response.reason:
        status.append(f" {response.reason}")
    console.print(status, style="bold")

    if response.headers:
        console.print("Headers:", style="bold")
        for key in sorted(response.headers):
            console.print(f"  {key}: {response.headers[key]}", highlight=False)

    if response.body is None:
        return
    content = response.body.read()
    response.body.seek(0)
    if not content:
        return

    text = content.decode('utf-8', errors='replace')
    console.print("Body:", style="bold")
    if "json" in response.header("Content-Type").lower():
        try:
            json.loads(text)
        except json.JSONDecodeError:
            pass
        else:
            console.print(RichJSON(text, indent=2))
            return
    console.print(text, highlight=False, markup=False)


def help_message(error: BaseException) -> str:
    for cls, message in _HELP_MESSAGES:
        if caused_by(error, cls):
            return message
    return ""


def build_error_panel(error: BaseException) -> Panel:
    body = Text()
    body.append("ERROR: ", style="bold red")
    body.append(str(error))
    help_text = help_message(error)
    if help_text:
        body.append("\n\nHELP: ", style="bold blue")
        body.append(help_text)
    if any(caused_by(error, cls) for cls in _USAGE_ERRORS):
        body.append("\n\nTIP: ", style="bold")
        body.append("Run 'reqchain --help' for usage information.")
    return Panel(body, border_style="red", expand=False)


def print_error(error: Optional[BaseException], console: Optional[Console] = None):
    if error is None:
        return
    (console or stderr_console).print(build_error_panel(error))


class ResultRecorder:
    """Result collector that prints each result as it arrives and keeps it for the summary."""

    def __init__(self, console: Optional[Console] = None, show_variables: bool = True):
        self.console = console or stdout_console
        self.show_variables = show_variables
        self.results: List[ReqResult] = []

    def __call__(self, name, method, url, status_code, error, duration, variables=None):
        result = ReqResult(
            name=name,
            method=method,
            url=url,
            status_code=status_code,
            duration=duration,
            success=error is None,
            error=error,
            variables=dict(variables or {}),
        )
        self.results.append(result)
        print_request_result(result, self.console)
        if self.show_variables:
            print_variables(result.variables, self.console)

    def summary(self):
        print_summary(self.results, self.console)
