"""Query acquisition and normalization for a LAN server status endpoint.

Fetches the query document over HTTP(S), normalizes its charset, decodes
its loosely shaped JSON into typed sections, and drives the fetch on a
cancellable polling schedule with at most one request in flight.

Key modules:
    models       -- QueryConfig, RawResponse, ParsedQueryResponse, FetchOutcome dataclasses
    errors       -- InvalidEndpoint, TransportError, CharsetDecodeError, DecodeError
    trust        -- is_trusted_host allow-list for self-signed certificates
    transport    -- build_url and RequestsTransport (one GET per call)
    normalizer   -- normalize body bytes to canonical text
    decoder      -- ordered shape strategies for each response section
    events       -- EventLog for diagnostic events
    orchestrator -- FetchOrchestrator single-flight fetch-and-record
    polling      -- PollingController restartable poll loop
    monitor      -- QueryMonitor caller facade
"""
