"""Document persistence error classes."""


class DocumentStoreError(Exception):
    """Raised by a DocumentStore when a document cannot be persisted.

    The report synthesizer converts this into an error ``DocumentToolResult``
    instead of failing the run.
    """
