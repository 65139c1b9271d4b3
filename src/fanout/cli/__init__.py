"""fanout command-line interface (``fanout fetch``, ``fanout load``, ``fanout config``)."""
