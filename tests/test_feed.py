from ausfallticker.jobs.ingest.sources.kvv.feed import FeedItem, is_relevant, parse_feed, relevant_items

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>KVV Verkehrsmeldungen</title>
    <item>
      <title>S5: Betriebsbedingte Fahrtausfälle</title>
      <link>https://www.kvv.de/meldung/1</link>
    </item>
    <item>
      <title>S4: Baustelle in Bretten</title>
      <link>https://www.kvv.de/meldung/2</link>
    </item>
    <item>
      <title>S1/S11: BETRIEBSBEDINGTER AUSFALL einzelner Fahrten</title>
      <link>https://www.kvv.de/meldung/3</link>
    </item>
    <item>
      <title>ohne Link</title>
    </item>
  </channel>
</rss>
"""


def test_parse_feed_skips_items_without_link():
    items = parse_feed(RSS)

    assert [i.link for i in items] == [
        "https://www.kvv.de/meldung/1",
        "https://www.kvv.de/meldung/2",
        "https://www.kvv.de/meldung/3",
    ]
    assert items[0].title == "S5: Betriebsbedingte Fahrtausfälle"


def test_relevant_items_filters_by_title_and_dedupes():
    items = parse_feed(RSS)
    items.append(FeedItem(title="S5: Betriebsbedingte Fahrtausfälle", link="https://www.kvv.de/meldung/1"))

    assert [i.link for i in relevant_items(items)] == [
        "https://www.kvv.de/meldung/1",
        "https://www.kvv.de/meldung/3",
    ]


def test_is_relevant():
    assert is_relevant(FeedItem(title="Linie S2: betriebsbedingter Ausfall", link="x"))
    assert not is_relevant(FeedItem(title="Fahrplanwechsel", link="x"))
