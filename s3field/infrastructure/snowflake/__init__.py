"""
Snowflake persistence for owner records.

The file field stores each owner's field value (the codec's item list)
in Snowflake. A mock connection keeps everything in memory for local
development and tests.
"""
