"""
Centralized operational defaults for reconciliation runs.

Infrastructure settings shared by every run (not tied to one schema or mapping
table). CLI arguments override these defaults at runtime.
"""


class ReconDefaults:
    """
    Operational defaults for reconciliation runs.

    All values can be overridden via CLI arguments:
    - pipeline_recon round-trip --target orders --settle-seconds 0
    - pipeline_recon validate --log-level DEBUG ...
    """

    # Round trip
    TARGET_TABLE = "orders"
    ID_FIELD = "orderId"
    SETTLE_SECONDS = 5  # Store ingestion delay before querying back
    QUERY_TIMEOUT = 30  # Seconds; 0 waits forever

    # Comparison
    NUMERIC_TOLERANCE = 0.001

    # Naming
    SOURCE_NAMING = "camel"
    TARGET_NAMING = "snake"

    # Logging
    LOG_LEVEL = "WARNING"  # CRITICAL, ERROR, WARNING, INFO, DEBUG

    @classmethod
    def to_dict(cls) -> dict:
        """Export all defaults as a dictionary."""
        return {
            key: getattr(cls, key)
            for key in dir(cls)
            if not key.startswith('_') and key.isupper()
        }

    @classmethod
    def log_summary(cls, logger=None):
        """
        Log a summary of all operational defaults.

        Args:
            logger: Optional logger instance. If None, prints to stdout.
        """
        summary = "\n".join([f"  {key}: {value}" for key, value in sorted(cls.to_dict().items())])
        message = f"Reconciliation Defaults:\n{summary}"

        if logger:
            logger.info(message)
        else:
            print(message)
