"""Discovery, conformance checks, reporting and the worker pool."""
