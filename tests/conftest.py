import json

import pytest

from ausfallticker.jobs.ingest.sources.kvv.config import KvvConfig
from ausfallticker.parsing.types import ParsingMetadata

ARTICLE_URL = "https://www.kvv.de/fahrplan/verkehrsmeldungen/s5-ausfall.html"

SINGLE_LINE_ARTICLE = """
<h1>S5: Betriebsbedingte Fahrtausfälle</h1>
<p>Nach aktuellem Stand 15.05.2024 12:00:00 Uhr</p>
<p>Auf der Linie S5 sind folgende Fahrten betroffen:<br>
84888 08:38 Uhr Söllingen Bahnhof - 10:07 Uhr Germersheim Bahnhof<br>
84889 10:38 Uhr Germersheim&nbsp;Bahnhof – 12:07 Uhr Söllingen Bahnhof<br>
</p>
<p>Ob deine Verbindung betroffen ist, erfährst du in der Fahrplanauskunft.</p>
"""


@pytest.fixture
def write_definition(tmp_path):
    directory = tmp_path / "2024" / "train-line-definitions"

    def _write(line, numbers, connected=None, name=None):
        directory.mkdir(parents=True, exist_ok=True)
        data = {"line": line, "trainNumbers": numbers}
        if connected is not None:
            data["connectedLines"] = connected
        path = directory / (name or f"{line.lower()}.json")
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    _write.directory = directory
    return _write


def make_metadata(line="S5", mentioned=("S5",), url=ARTICLE_URL):
    return ParsingMetadata(
        line=line,
        mentioned_lines=tuple(mentioned),
        date="2024-05-15",
        stand="2024-05-15T10:00:00.000Z",
        source_url=url,
        captured_at="2024-05-15T10:05:00.000Z",
    )


def make_cfg(tmp_path, **overrides):
    values = dict(
        rss_url="https://www.kvv.de/ticker_rss.xml",
        data_dir=tmp_path,
        connect_timeout=1.0,
        read_timeout=1.0,
        retries=3,
        backoff_base=0.0,
        max_concurrency=2,
        fahrplan_year=2024,
        fallback_persist=True,
        log_level="INFO",
    )
    values.update(overrides)
    return KvvConfig(**values)
