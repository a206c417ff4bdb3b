"""
Link configuration: the immutable LinkConfig value, loading it from ConfigObj files validated
against a schema, and sources that notify when the configuration changes.
"""
