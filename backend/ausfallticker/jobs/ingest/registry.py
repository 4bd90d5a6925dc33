from ausfallticker.jobs.ingest.sources.kvv.source import KvvSource

SOURCES = {
    "kvv": KvvSource,
}
