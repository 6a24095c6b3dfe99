"""Record routing — picks a token and formats the output line for each record.

The router is the only stateful step between the sources and the sink: it
memoizes image→token and container-name→label lookups.  Records that
resolve to no token are dropped silently.
"""
