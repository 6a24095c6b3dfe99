"""Network bridge between the shipper and the ingestion endpoint.

Modules
-------
transport
    ``TcpConnector`` opens plain or TLS connections; ``Connection`` wraps the
    asyncio stream pair behind ``write()`` / ``wait_closed_by_peer()`` /
    ``close()`` so the sink manager never touches raw streams.
"""
