"""Shared fixtures: canned pip output, a fake interpreter, and a PyPI search page."""

from __future__ import annotations

import json
import sys
import textwrap
from dataclasses import dataclass
from typing import TYPE_CHECKING

import pytest
import structlog

if TYPE_CHECKING:
    from pathlib import Path

INSTALLED = [
    {"name": "certifi", "version": "2024.2.2"},
    {"name": "pip", "version": "24.0"},
    {"name": "pyserial", "version": "3.4"},
    {"name": "requests", "version": "2.31.0"},
]

OUTDATED = [
    {"name": "pip", "version": "24.0", "latest_version": "24.2", "latest_filetype": "wheel"},
    {"name": "pyserial", "version": "3.4", "latest_version": "3.5", "latest_filetype": "wheel"},
]

# Behaves like ``python -m pip`` for the handful of subcommands pipmanager uses.
_FAKE_PIP = """\
#!{python}
import json
import sys
from pathlib import Path

HERE = Path(__file__).parent
args = sys.argv[1:]
with open(HERE / "calls.jsonl", "a") as f:
    f.write(json.dumps(args) + "\\n")

delay = HERE / "delay"
if delay.exists():
    import time
    time.sleep(float(delay.read_text()))

if args[:2] != ["-m", "pip"]:
    sys.exit(2)
cmd = args[2:]

if cmd[0] == "list":
    name = "outdated.json" if "--outdated" in cmd else "installed.json"
    sys.stdout.write((HERE / name).read_text())
    sys.exit(0)

if cmd[0] == "install" and cmd[1].endswith("=="):
    sys.stderr.write("WARNING: You are using pip version 24.0\\n")
    sys.stderr.write(
        "ERROR: Could not find a version that satisfies the requirement "
        + cmd[1] + " (from versions: 0.9, 1.0, 1.1)\\n"
    )
    sys.stderr.write("ERROR: No matching distribution found for " + cmd[1] + "\\n")
    sys.exit(1)

if any(a.startswith("broken") for a in cmd):
    sys.stderr.write("ERROR: No matching distribution found for broken\\n")
    sys.exit(1)

if cmd[0] == "install":
    print("Successfully installed " + " ".join(cmd[1:]))
    sys.exit(0)

if cmd[0] == "uninstall":
    print("Successfully uninstalled " + cmd[1])
    sys.exit(0)

sys.exit(2)
"""


@dataclass
class FakePip:
    """A stand-in interpreter whose ``-m pip`` answers from JSON files."""

    root: Path

    @property
    def python(self) -> str:
        return str(self.root / "python")

    def set_installed(self, packages: list[dict[str, str]]) -> None:
        (self.root / "installed.json").write_text(json.dumps(packages))

    def set_outdated(self, packages: list[dict[str, str]] | str) -> None:
        text = packages if isinstance(packages, str) else json.dumps(packages)
        (self.root / "outdated.json").write_text(text)

    def set_delay(self, seconds: float) -> None:
        """Make every call sleep before answering."""
        (self.root / "delay").write_text(str(seconds))

    def calls(self) -> list[list[str]]:
        log = self.root / "calls.jsonl"
        if not log.exists():
            return []
        return [json.loads(line)[2:] for line in log.read_text().splitlines()]


@pytest.fixture()
def fake_pip(tmp_path: Path) -> FakePip:
    if sys.platform == "win32":
        pytest.skip("Shebang scripts are not executable on Windows.")
    root = tmp_path / "fake-python"
    root.mkdir()
    script = root / "python"
    script.write_text(_FAKE_PIP.format(python=sys.executable))
    script.chmod(0o755)
    fake = FakePip(root)
    fake.set_installed(INSTALLED)
    fake.set_outdated(OUTDATED)
    return fake


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


SEARCH_PAGE_HTML = textwrap.dedent("""\
    <!DOCTYPE html>
    <html lang="en">
    <head><title>Search results · PyPI</title></head>
    <body>
    <form action="/search/" role="search"><input name="q" value="pip"></form>
    <ul class="unstyled" aria-label="Search results">
      <li>
        <a class="package-snippet" href="/project/pip/">
          <h3 class="package-snippet__title">
            <span class="package-snippet__name">pip</span>
            <span class="package-snippet__version">24.2</span>
            <span class="package-snippet__created"><time datetime="2024-07-28T21:17:27+0000" data-controller="localized-time">Jul 28, 2024</time></span>
          </h3>
          <p class="package-snippet__description">The PyPA recommended tool for installing Python packages.</p>
        </a>
      </li>
      <li>
        <a class="package-snippet" href="/project/pip-tools/">
          <h3 class="package-snippet__title">
            <span class="package-snippet__name">pip-tools</span>
            <span class="package-snippet__version">7.4.1</span>
            <span class="package-snippet__created"><time datetime="2024-03-06T12:32:09+0000" data-controller="localized-time">Mar 6, 2024</time></span>
          </h3>
          <p class="package-snippet__description">pip-tools keeps your pinned dependencies fresh &amp; simple&nbsp;to manage.</p>
        </a>
      </li>
    </ul>
    <div class="button-group button-group--pagination">
      <a href="/search/?q=pip&amp;page=1" class="button button-group__button button--disabled">Previous</a>
      <a href="/search/?q=pip&amp;page=1" class="button button-group__button button--primary">1</a>
      <a href="/search/?q=pip&amp;page=2" class="button button-group__button">2</a>
      <span class="button button-group__button button--disabled">…</span>
      <a href="/search/?q=pip&amp;page=500" class="button button-group__button">500</a>
      <a href="/search/?q=pip&amp;page=2" class="button button-group__button">Next</a>
    </div>
    </body>
    </html>
""")

NO_RESULTS_HTML = textwrap.dedent("""\
    <html><body>
    <div class="callout-block">
      <p>There were no results for '<strong>zzqqxxnotapackage</strong>'</p>
    </div>
    </body></html>
""")


@pytest.fixture()
def search_html() -> str:
    return SEARCH_PAGE_HTML


@pytest.fixture()
def no_results_html() -> str:
    return NO_RESULTS_HTML
