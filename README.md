# simreports

Building blocks for setting up and observing simulations:

- **`simreports.report`**: one CSV file per report type. File names are
  built from a prefix, a short name and an output directory. Existing files
  are kept safe unless overwriting is switched on.
- **`simreports.tabulator`**: counts people for each combination of the
  values of chosen properties. It can also turn the counts into report rows
  with the columns `t`, the property columns and `count`.
- **`simreports.web_api`**: a small HTTP server on `127.0.0.1` that takes JSON
  commands. Commands are queued, and they are answered only while the program
  waits in `WebApi.serve_requests`.
- **`simreports.runner`**: parses the standard command-line options, builds a
  `Session` and calls your setup function.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install ".[test]"
```

## Writing reports

```python
from dataclasses import dataclass
from pathlib import Path

from simreports.report import ReportOptions, Reports


@dataclass
class Sample:
    id: int
    value: str


options = ReportOptions(file_prefix="run1_", output_dir=Path("out"))
with Reports(options) as reports:
    reports.add_report(Sample, "sample")          # creates out/run1_sample.csv
    reports.send_report(Sample(id=1, value="hello"))
```

`ReportOptions` has three fields:

- `file_prefix`: defaults to `""`.
- `output_dir`: defaults to the current directory.
- `overwrite`: defaults to `False`.

`Reports.filename(short_name)` returns the path `<output_dir>/<prefix><short_name>.csv`.

### Report types and rows

- `add_report(report_type, short_name)` opens a file for instances of a
  dataclass. The header row is made from the field names and is written
  together with the first report that is sent.
- `send_report(report)` writes one row for a dataclass instance. Booleans are
  written as `true`/`false` and `None` as an empty field.
- `add_table_report(key, short_name, columns)` opens a file under any hashable
  key and writes the header `t, <columns>, count` at once.
- `write_row(key, row)` adds a raw row to the file under `key`.

### Errors and closing

If the file already exists and `overwrite` is false, adding a report raises
`ReportError`, which is a subclass of `OSError`. Any other failure to create
the file raises `ReportError` too. Sending to a report type or key that was
never added raises `LookupError("No writer found for the report type")`.

`Reports.close()` closes every file. Leaving the `with` block does the same.

### Fixed decimal places

`format_float(value, digits)` formats a float with a fixed number of decimal
places, for example `format_float(1.5, 3) == "1.500"`.

## Tabulating properties

Build a `Tabulator` from the properties to count by. Each argument can be:

- a property name, such as `"IsRunner"`;
- a `(key, name)` pair;
- any object with a `__name__`, such as a class, which is used as both key and
  column name.

A person can be a mapping from keys to values, or an object with attributes
named after the columns. A missing property raises `KeyError`.

```python
from simreports.tabulator import Tabulator

tab = Tabulator("IsRunner")
people = [{"IsRunner": True}, {"IsRunner": False}, {"IsRunner": False}]
tab.tabulate(people)   # Counter({("false",): 2, ("true",): 1})
list(tab.rows(1.2, people))   # [("1.2", "true", 1), ("1.2", "false", 2)]
```

The time is written without trailing zeros, so `0.0` becomes `"0"`.
`columns()` and `keys()` return the column names and the lookup keys. The
rows can be passed straight to `Reports.write_row` for a report opened with
`add_table_report(key, name, tab.columns())`.

## Web API

```python
from simreports.web_api import WebApi

api = WebApi()
url = api.start(33334)        # http://127.0.0.1:33334/<random id>/
api.add_handler("echo", lambda state, args: args)
next_time = api.serve_requests(state)
api.stop()
```

Clients send `POST <url>cmd/<command>` with a JSON body. While
`serve_requests` runs, each command is answered as follows:

- `continue`: answered with `200 {}`. `serve_requests` then returns `None`.
- `next`, with the body `{"Next": {"next_time": <number>}}`: answered with
  `200 {}`. `serve_requests` then returns that time.
- any other registered command: the result of `handler(state, arguments)` is
  returned as JSON.
- an unknown command: `404 {"error": "No command <name>"}`.
- a body that is not valid JSON, or a handler that raises: `400` with an
  `"error"` message.

`GET <url>` redirects to `static/index.html` under the same prefix, but no
static files are served. `start` raises `WebApiError` when the port cannot be
bound or the server is already running. `add_handler` and `serve_requests`
raise `WebApiError` before `start` has been called. `WebApi` is also a
context manager that stops the server on exit.

## Command line

```
simreports --random-seed 42 --output out --prefix run1_ --force-overwrite --log-level info
```

| Option | Meaning |
| --- | --- |
| `-r`, `--random-seed` | random seed (default `0`) |
| `-c`, `--config` | JSON file of global properties (must hold an object) |
| `-o`, `--output` | report output directory |
| `--prefix` | report file prefix |
| `-f`, `--force-overwrite` | overwrite existing report files |
| `-l`, `--log-level` | see below |
| `-w`, `--web [PORT]` | start the web API (default port `33334`) |

### Log levels

`--log-level` takes either a single level or per-logger pairs:

- A single level is one of `off`, `error`, `warn`, `info`, `debug` or
  `trace`. Case does not matter.
- Per-logger pairs look like `simreports=debug,other=trace`. For each pair the
  command prints `Logging enabled for <name> at level <LEVEL>`.

Anything else raises `ValueError`. `parse_log_levels` and `configure_logging`
can also be called directly.

### Running your own setup

To run your own setup with these options, call
`simreports.runner.run_with_args(setup_fn, argv=None, add_arguments=None)`.

- `add_arguments(parser)` may add options of your own to the parser.
- `setup_fn(session, args, custom)` receives:
  - the `Session`;
  - the parsed `BaseArgs`;
  - a namespace holding your own options, or `None` when `add_arguments` was
    not given.

A `Session` holds:

- `reports`, set up from the report options;
- `rng`, a `random.Random` seeded with the random seed;
- `global_properties`, loaded from the config file;
- a `people` list;
- `time`;
- the `web_api` and `web_url`, when `--web` is given.

With `--web`, the runner adds the commands `time`, which returns
`{"time": ...}`, and `population`, which returns `{"population": <number of
people>}`. After `setup_fn` returns, it answers web requests. Each `next`
command sets `session.time`, and the runner stops at `continue`. Reports are
closed and the server is stopped before `run_with_args` returns the session.

`parse_base_args(argv)` parses only the base options into `BaseArgs`.

## What this package does not do

There is no event scheduler or simulation loop: `session.time` only changes
when a web client sends `next`, and no periodic reports are written
automatically. There is no interactive debugger or breakpoint option, and the
web API serves no pages or static assets.

## Running the tests

```
pytest
```